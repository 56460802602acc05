"""
Publication state machine: publish and duplicate blueprints.

    draft      ──publish──▶ published            (in place, version kept)
    published  ──publish──▶ archived + new row   (copy at version + 1, published)
    archived   ──publish──▶ ValidationError

The transition table lives in ``intake.models.blueprint.PUBLISH_TRANSITIONS``.
Both operations run in a single ``transaction()``: any failure during the
copy or the archival leaves the database untouched.

Concurrent version bumps of the same source are not serialised. The
``(company_id, name, version)`` unique key turns the losing writer's insert
into a ConflictError, but no lock is taken up front.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from intake.core.exceptions import ValidationError
from intake.models import db
from intake.models.blueprint import PUBLISH_TRANSITIONS, Blueprint, Field, Section
from intake.services import cache_service
from intake.services.blueprint_service import validate_blueprint_name
from intake.services.helpers.scoped_queries import get_scoped
from intake.services.helpers.transactions import transaction
from intake.services.structural_copy import copy_blueprint_structure

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _assert_publishable(bp: Blueprint) -> None:
    section_count = db.session.execute(
        select(func.count(Section.id)).where(Section.blueprint_id == bp.id)
    ).scalar_one()
    if section_count == 0:
        raise ValidationError("Blueprint must have at least one section")

    field_count = db.session.execute(
        select(func.count(Field.id))
        .join(Section, Section.id == Field.section_id)
        .where(Section.blueprint_id == bp.id)
    ).scalar_one()
    if field_count == 0:
        raise ValidationError("Blueprint must have at least one field")


def publish_blueprint(company_id: int, blueprint_id: int) -> dict:
    """Publish a blueprint.

    Returns:
        The published blueprint's dict. For a version bump this is the new
        row; ``previous_id`` then names the row that was archived.

    Raises:
        NotFoundError: blueprint not in the company.
        ValidationError: archived source, no sections, or no fields.
        ConflictError: a concurrent bump already created the next version.
    """
    with transaction():
        bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)
        transition = PUBLISH_TRANSITIONS.get(bp.status)
        if transition is None:
            raise ValidationError("Archived blueprints cannot be published")
        _assert_publishable(bp)

        previous_id = None
        if transition["mode"] == "in_place":
            bp.status = transition["to"]
            bp.updated_at = _utcnow()
            published = bp
        else:
            published = copy_blueprint_structure(
                bp,
                name=bp.name,
                description=bp.description,
                status="published",
                version=bp.version + 1,
            )
            bp.status = transition["to"]
            bp.updated_at = _utcnow()
            previous_id = bp.id
        db.session.flush()
        result = published.to_dict()

    cache_service.invalidate_blueprint_list(company_id)
    if previous_id is None:
        logger.info(
            "Blueprint published id=%s version=%s company_id=%s",
            result["id"], result["version"], company_id,
        )
    else:
        logger.info(
            "Blueprint published id=%s version=%s company_id=%s (archived id=%s)",
            result["id"], result["version"], company_id, previous_id,
        )
    result["previous_id"] = previous_id
    return result


def duplicate_blueprint(company_id: int, source_id: int, new_name) -> dict:
    """Copy a blueprint of any status into a new draft lineage (version 1).

    Raises:
        NotFoundError: source not in the company.
        ValidationError: blank name.
        ConflictError: name already used in the company.
    """
    with transaction():
        source = get_scoped(Blueprint, source_id, company_id=company_id)
        name = validate_blueprint_name(company_id, new_name)
        copy = copy_blueprint_structure(
            source,
            name=name,
            description=source.description,
            status="draft",
            version=1,
        )
        result = copy.to_dict()

    cache_service.invalidate_blueprint_list(company_id)
    logger.info(
        "Blueprint duplicated source_id=%s new_id=%s company_id=%s",
        source_id, result["id"], company_id,
    )
    return result
