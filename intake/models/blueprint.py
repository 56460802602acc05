"""
Blueprint schema models: Blueprint → Section → Field.

A blueprint row is one *version* of a schema. Publishing a draft flips it to
``published`` in place; publishing an already-published row structurally
copies it into a new row (version + 1) and archives the original, so every
version is a full independent tree that sessions can reference forever.
"""

from datetime import datetime, timezone

from intake.models import db


# ── Constants ────────────────────────────────────────────────────────────────

BLUEPRINT_STATUSES = {"draft", "published", "archived"}
FIELD_TYPES = ("ShortText", "LongText", "Toggle")
FIELD_SPANS = (1, 2)

# Publish action keyed by current status. Statuses missing here (archived)
# cannot be published.
#   in_place     flip the row itself to published
#   new_version  copy the tree into version + 1, archive the source row
PUBLISH_TRANSITIONS = {
    "draft": {"mode": "in_place", "to": "published"},
    "published": {"mode": "new_version", "to": "archived"},
}


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. BLUEPRINTS
# ═══════════════════════════════════════════════════════════════
class Blueprint(db.Model):
    __tablename__ = "blueprints"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    version = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default="draft")  # draft, published, archived
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("company_id", "name", "version", name="uq_blueprint_company_name_version"),
        db.Index("ix_blueprints_company_id", "company_id"),
        db.Index("ix_blueprints_status", "status"),
    )

    sections = db.relationship(
        "Section",
        back_populates="blueprint",
        order_by="Section.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self, include_sections=False):
        d = {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_sections:
            d["sections"] = [s.to_dict(include_fields=True) for s in self.sections]
        return d


# ═══════════════════════════════════════════════════════════════
# 2. SECTIONS
# ═══════════════════════════════════════════════════════════════
class Section(db.Model):
    __tablename__ = "sections"

    id = db.Column(db.Integer, primary_key=True)
    blueprint_id = db.Column(
        db.Integer, db.ForeignKey("blueprints.id", ondelete="CASCADE"), nullable=False
    )
    # Allocated max+1 at insert time; advisory ordering, not a hard constraint.
    order_index = db.Column(db.Integer, nullable=False, default=0)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.Index("ix_sections_blueprint_order", "blueprint_id", "order_index"),
    )

    blueprint = db.relationship("Blueprint", back_populates="sections")
    fields = db.relationship(
        "Field",
        back_populates="section",
        order_by="Field.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self, include_fields=False):
        d = {
            "id": self.id,
            "blueprint_id": self.blueprint_id,
            "order_index": self.order_index,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_fields:
            d["fields"] = [f.to_dict() for f in self.fields]
        return d


# ═══════════════════════════════════════════════════════════════
# 3. FIELDS
# ═══════════════════════════════════════════════════════════════
class Field(db.Model):
    __tablename__ = "fields"

    id = db.Column(db.Integer, primary_key=True)
    section_id = db.Column(
        db.Integer, db.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    # Token used in prompt templates. Not unique within a blueprint.
    key = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False, default="ShortText")  # ShortText, LongText, Toggle
    label = db.Column(db.String(255), nullable=False)
    help_text = db.Column(db.Text)
    placeholder = db.Column(db.String(255))
    required = db.Column(db.Boolean, nullable=False, default=False)
    span = db.Column(db.Integer, nullable=False, default=1)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.Index("ix_fields_section_order", "section_id", "order_index"),
    )

    section = db.relationship("Section", back_populates="fields")

    def to_dict(self):
        return {
            "id": self.id,
            "section_id": self.section_id,
            "key": self.key,
            "type": self.type,
            "label": self.label,
            "help_text": self.help_text,
            "placeholder": self.placeholder,
            "required": self.required,
            "span": self.span,
            "order_index": self.order_index,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
