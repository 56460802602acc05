"""
Company-scoped query helpers.

Every get-by-id in a service MUST go through these helpers instead of
``db.session.get(Model, pk)``. An unscoped lookup would let one company read
or mutate another company's blueprints and sessions.

Cross-company access is indistinguishable from a missing row: both raise
NotFoundError → HTTP 404.

Usage:
    # Models that carry company_id directly
    bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)

    # Models owned through a parent (Section → Blueprint, Field → Section → Blueprint)
    section = get_section_scoped(section_id, company_id)
    field = get_field_scoped(field_id, company_id)
"""

import logging

from sqlalchemy import select

from intake.core.exceptions import NotFoundError
from intake.models import db
from intake.models.blueprint import Blueprint, Field, Section

logger = logging.getLogger(__name__)

# Supported scope keyword → model column name.
_SCOPE_KWARGS = ("company_id", "blueprint_id", "session_id")


def get_scoped(
    model,
    pk: int,
    *,
    company_id: int | None = None,
    blueprint_id: int | None = None,
    session_id: int | None = None,
    resource: str | None = None,
):
    """Fetch a single entity by PK with a mandatory scope filter.

    At least one scope kwarg MUST be provided and every provided kwarg MUST
    name a real column on the model; otherwise ValueError is raised so the
    bug surfaces in tests instead of as a silent unscoped lookup.

    Args:
        model: SQLAlchemy model class with an ``id`` PK.
        pk: Primary key value to look up.
        company_id / blueprint_id / session_id: Scope filters.
        resource: Name used in the NotFoundError (defaults to the class name).

    Returns:
        The model instance.

    Raises:
        ValueError: No scope given, or a scope column missing on the model.
        NotFoundError: Row absent or outside the scope.
    """
    provided_scopes = {
        "company_id": company_id,
        "blueprint_id": blueprint_id,
        "session_id": session_id,
    }
    provided_scopes = {k: v for k, v in provided_scopes.items() if v is not None}

    if not provided_scopes:
        raise ValueError(
            f"{model.__name__} id={pk} requires at least one scope filter "
            f"({', '.join(_SCOPE_KWARGS)}). Unscoped lookups are forbidden."
        )

    missing_fields = [field for field in provided_scopes if not hasattr(model, field)]
    if missing_fields:
        raise ValueError(
            f"{model.__name__} has no column(s) {sorted(missing_fields)}; "
            "refusing to perform a partially scoped lookup."
        )

    stmt = select(model).where(model.id == pk)
    for field, value in provided_scopes.items():
        stmt = stmt.where(getattr(model, field) == value)

    result = db.session.execute(stmt).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, provided_scopes)
        raise NotFoundError(resource=resource or model.__name__, resource_id=pk)
    return result


def get_section_scoped(section_id: int, company_id: int) -> Section:
    """Load a section whose owning blueprint belongs to ``company_id``."""
    stmt = (
        select(Section)
        .join(Blueprint, Blueprint.id == Section.blueprint_id)
        .where(Section.id == section_id, Blueprint.company_id == company_id)
    )
    section = db.session.execute(stmt).scalar_one_or_none()
    if section is None:
        raise NotFoundError(resource="Section", resource_id=section_id, company_id=company_id)
    return section


def get_field_scoped(field_id: int, company_id: int) -> Field:
    """Load a field whose section's blueprint belongs to ``company_id``."""
    stmt = (
        select(Field)
        .join(Section, Section.id == Field.section_id)
        .join(Blueprint, Blueprint.id == Section.blueprint_id)
        .where(Field.id == field_id, Blueprint.company_id == company_id)
    )
    field = db.session.execute(stmt).scalar_one_or_none()
    if field is None:
        raise NotFoundError(resource="Field", resource_id=field_id, company_id=company_id)
    return field
