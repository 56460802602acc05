"""
Structural copy engine: clone a blueprint's section/field tree into a new row.

Used by both duplicate (new draft lineage) and publish (version bump). The
copy gets fresh ids everywhere; attributes are copied verbatim so that for
every ``(section.order_index, field.order_index)`` position the source and
the copy hold equal values.

The engine only ``flush()``es. It must run inside the caller's
``transaction()`` so the whole tree is persisted, or nothing is.
"""

import logging

from sqlalchemy import select

from intake.models import db
from intake.models.blueprint import Blueprint, Field, Section

logger = logging.getLogger(__name__)

_SECTION_COPY_ATTRS = ("order_index", "title", "description")
_FIELD_COPY_ATTRS = (
    "key", "type", "label", "help_text", "placeholder", "required", "span", "order_index",
)


def copy_blueprint_structure(
    source: Blueprint,
    *,
    name: str,
    description: str | None,
    status: str,
    version: int,
) -> Blueprint:
    """Insert a new blueprint (same company) holding a copy of ``source``'s tree.

    Args:
        source: Blueprint to copy from.
        name / description / status / version: Attributes of the new row.

    Returns:
        The new Blueprint, flushed (has an id) but not committed.
    """
    target = Blueprint(
        company_id=source.company_id,
        name=name,
        description=description,
        status=status,
        version=version,
    )
    db.session.add(target)
    db.session.flush()

    sections = db.session.execute(
        select(Section)
        .where(Section.blueprint_id == source.id)
        .order_by(Section.order_index, Section.id)
    ).scalars().all()

    section_map: dict[int, int] = {}
    for section in sections:
        clone = Section(blueprint_id=target.id)
        for attr in _SECTION_COPY_ATTRS:
            setattr(clone, attr, getattr(section, attr))
        db.session.add(clone)
        db.session.flush()
        section_map[section.id] = clone.id

    fields = db.session.execute(
        select(Field)
        .join(Section, Section.id == Field.section_id)
        .where(Section.blueprint_id == source.id)
        .order_by(Section.order_index, Field.order_index, Field.id)
    ).scalars().all()

    copied_fields = 0
    for field in fields:
        new_section_id = section_map.get(field.section_id)
        if new_section_id is None:
            logger.debug(
                "Structural copy: skipping field id=%s, section id=%s not mapped",
                field.id, field.section_id,
            )
            continue
        clone = Field(section_id=new_section_id)
        for attr in _FIELD_COPY_ATTRS:
            setattr(clone, attr, getattr(field, attr))
        db.session.add(clone)
        copied_fields += 1
    db.session.flush()

    logger.info(
        "Structural copy source_id=%s target_id=%s sections=%s fields=%s",
        source.id, target.id, len(section_map), copied_fields,
    )
    return target
