"""
Session models: data-collection runs bound to one blueprint version.

Models:
    - Session: one collection run; ``blueprint_id`` never repoints to a newer version
    - SessionFieldValue: captured value per (session, field); doubles as the
      AI suggestion queue while ``reviewed`` is False
"""

from datetime import datetime, timezone

from intake.models import db


SESSION_STATUSES = {"in_progress", "completed", "archived"}


def _utcnow():
    return datetime.now(timezone.utc)


class Session(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    blueprint_id = db.Column(
        db.Integer, db.ForeignKey("blueprints.id", ondelete="RESTRICT"), nullable=False
    )
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="in_progress")
    completion_percent = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.Integer, db.ForeignKey("members.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.Index("ix_sessions_company_id", "company_id"),
        db.Index("ix_sessions_blueprint_id", "blueprint_id"),
    )

    blueprint = db.relationship("Blueprint")
    values = db.relationship(
        "SessionFieldValue",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "blueprint_id": self.blueprint_id,
            "blueprint_name": self.blueprint.name if self.blueprint else None,
            "blueprint_version": self.blueprint.version if self.blueprint else None,
            "name": self.name,
            "status": self.status,
            "completion_percent": self.completion_percent,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class SessionFieldValue(db.Model):
    """Captured value for one field of one session.

    A human-entered value is stored with ``reviewed=True``. An AI suggestion is
    stored with ``reviewed=False`` and a ``confidence``; accepting keeps the
    value, rejecting nulls it out.
    """

    __tablename__ = "session_field_values"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer, db.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    field_id = db.Column(
        db.Integer, db.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False
    )
    value = db.Column(db.Text)
    source_id = db.Column(db.Integer)
    confidence = db.Column(db.Float)
    reviewed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("session_id", "field_id", name="uq_sfv_session_field"),
        db.Index("ix_sfv_session_reviewed", "session_id", "reviewed"),
        db.Index("ix_sfv_field_id", "field_id"),
    )

    session = db.relationship("Session", back_populates="values")
    field = db.relationship("Field")

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "field_id": self.field_id,
            "value": self.value,
            "source_id": self.source_id,
            "confidence": self.confidence,
            "reviewed": self.reviewed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
