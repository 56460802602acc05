"""
Company & member models: the tenancy boundary.

Every blueprint and session row carries a ``company_id``; members hold one
role per company which gates mutating operations (owner > editor > viewer).
"""

from datetime import datetime, timezone

from intake.models import db


MEMBER_ROLES = {"owner", "editor", "viewer"}


# ═══════════════════════════════════════════════════════════════
# 1. COMPANIES
# ═══════════════════════════════════════════════════════════════
class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    members = db.relationship(
        "Member", back_populates="company", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 2. MEMBERS
# ═══════════════════════════════════════════════════════════════
class Member(db.Model):
    __tablename__ = "members"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    email = db.Column(db.String(200), nullable=False)
    name = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default="viewer")  # owner, editor, viewer
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Composite unique: same email can belong to different companies
    __table_args__ = (
        db.UniqueConstraint("company_id", "email", name="uq_member_company_email"),
        db.Index("ix_members_company_id", "company_id"),
    )

    company = db.relationship("Company", back_populates="members")

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
