"""initial_schema

Creates the tenancy, schema and session tables:
  - companies, members: tenancy boundary and member roles
  - blueprints, sections, fields: versioned schema tree
  - sessions, session_field_values: collection runs and captured values

Tables created conditionally (IF NOT EXISTS semantics) so the revision can run
against a development database that already received them via db.create_all().

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Companies / members ───────────────────────────────────────────────
    if "companies" not in existing:
        op.create_table(
            "companies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "members" not in existing:
        op.create_table(
            "members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column(
                "role", sa.String(length=20), nullable=False,
                comment="owner | editor | viewer",
            ),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("company_id", "email", name="uq_member_company_email"),
        )
        op.create_index("ix_members_company_id", "members", ["company_id"])

    # ── Blueprint tree ────────────────────────────────────────────────────
    if "blueprints" not in existing:
        op.create_table(
            "blueprints",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                comment="draft | published | archived",
            ),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "company_id", "name", "version", name="uq_blueprint_company_name_version",
            ),
        )
        op.create_index("ix_blueprints_company_id", "blueprints", ["company_id"])
        op.create_index("ix_blueprints_status", "blueprints", ["status"])

    if "sections" not in existing:
        op.create_table(
            "sections",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("blueprint_id", sa.Integer(), nullable=False),
            sa.Column("order_index", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["blueprint_id"], ["blueprints.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_sections_blueprint_order", "sections", ["blueprint_id", "order_index"])

    if "fields" not in existing:
        op.create_table(
            "fields",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("section_id", sa.Integer(), nullable=False),
            sa.Column(
                "key", sa.String(length=255), nullable=False,
                comment="Template token; not unique within a blueprint.",
            ),
            sa.Column(
                "type", sa.String(length=20), nullable=False,
                comment="ShortText | LongText | Toggle",
            ),
            sa.Column("label", sa.String(length=255), nullable=False),
            sa.Column("help_text", sa.Text(), nullable=True),
            sa.Column("placeholder", sa.String(length=255), nullable=True),
            sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("span", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("order_index", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["section_id"], ["sections.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_fields_section_order", "fields", ["section_id", "order_index"])

    # ── Sessions ──────────────────────────────────────────────────────────
    if "sessions" not in existing:
        op.create_table(
            "sessions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column(
                "blueprint_id", sa.Integer(), nullable=False,
                comment="Bound blueprint version; never repointed.",
            ),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                comment="in_progress | completed | archived",
            ),
            sa.Column("completion_percent", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["blueprint_id"], ["blueprints.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["created_by"], ["members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_sessions_company_id", "sessions", ["company_id"])
        op.create_index("ix_sessions_blueprint_id", "sessions", ["blueprint_id"])

    if "session_field_values" not in existing:
        op.create_table(
            "session_field_values",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.Integer(), nullable=False),
            sa.Column("field_id", sa.Integer(), nullable=False),
            sa.Column("value", sa.Text(), nullable=True),
            sa.Column("source_id", sa.Integer(), nullable=True),
            sa.Column("confidence", sa.Float(), nullable=True),
            sa.Column(
                "reviewed", sa.Boolean(), nullable=False, server_default=sa.false(),
                comment="False while the row is a pending AI suggestion.",
            ),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["field_id"], ["fields.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("session_id", "field_id", name="uq_sfv_session_field"),
        )
        op.create_index("ix_sfv_session_reviewed", "session_field_values", ["session_id", "reviewed"])
        op.create_index("ix_sfv_field_id", "session_field_values", ["field_id"])


def downgrade():
    for table in (
        "session_field_values",
        "sessions",
        "fields",
        "sections",
        "blueprints",
        "members",
        "companies",
    ):
        op.drop_table(table)
