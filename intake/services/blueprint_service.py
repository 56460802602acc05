"""Blueprint schema service: blueprints, sections and fields.

Rules:
  - company_id is always an explicit parameter (never read from g).
  - db.session.commit() happens only through ``transaction()``.
  - Partial updates go through explicit attribute whitelists.
  - Every mutation invalidates the company's cached blueprint list.

Structural edits (sections/fields) are allowed while a blueprint is a draft,
or published with no sessions bound to it. Archived rows are read-only.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import func, select

from intake.core.exceptions import ConflictError, NotFoundError, ValidationError
from intake.models import db
from intake.models.blueprint import FIELD_SPANS, FIELD_TYPES, Blueprint, Field, Section
from intake.models.session import Session
from intake.services import cache_service
from intake.services.helpers.scoped_queries import (
    get_field_scoped,
    get_scoped,
    get_section_scoped,
)
from intake.services.helpers.transactions import transaction

logger = logging.getLogger(__name__)

_BLUEPRINT_UPDATABLE = ("name", "description")
_SECTION_UPDATABLE = ("title", "description")
_FIELD_UPDATABLE = ("key", "type", "label", "help_text", "placeholder", "required", "span")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_key(label: str) -> str:
    """Derive a token key from a human label: ``"Project Name!"`` → ``"project_name"``."""
    return _NON_ALNUM.sub("_", (label or "").lower()).strip("_")


# ── Internal guards ──────────────────────────────────────────────────────────


def _session_count(blueprint_id: int) -> int:
    return db.session.execute(
        select(func.count(Session.id)).where(Session.blueprint_id == blueprint_id)
    ).scalar_one()


def _assert_structure_editable(bp: Blueprint) -> None:
    if bp.status == "archived":
        raise ValidationError("Archived blueprints cannot be edited")
    if bp.status == "published" and _session_count(bp.id) > 0:
        raise ConflictError(
            "Blueprint structure is locked because sessions use it; publish a new version instead",
            resource="Blueprint",
        )


def _touch(bp: Blueprint) -> None:
    bp.updated_at = _utcnow()


def _name_taken(company_id: int, name: str) -> bool:
    return db.session.execute(
        select(func.count(Blueprint.id)).where(
            Blueprint.company_id == company_id, Blueprint.name == name
        )
    ).scalar_one() > 0


def validate_blueprint_name(company_id: int, name) -> str:
    """Return the trimmed name or raise ValidationError / ConflictError."""
    if name is not None and not isinstance(name, str):
        raise ValidationError("Blueprint name must be a string")
    name = (name or "").strip()
    if not name:
        raise ValidationError("Blueprint name is required")
    if len(name) > 255:
        raise ValidationError("Blueprint name must be at most 255 characters")
    if _name_taken(company_id, name):
        raise ConflictError("A blueprint with this name already exists", resource="Blueprint")
    return name


def _next_section_index(blueprint_id: int) -> int:
    current = db.session.execute(
        select(func.max(Section.order_index)).where(Section.blueprint_id == blueprint_id)
    ).scalar_one()
    return 0 if current is None else current + 1


def _next_field_index(section_id: int) -> int:
    current = db.session.execute(
        select(func.max(Field.order_index)).where(Field.section_id == section_id)
    ).scalar_one()
    return 0 if current is None else current + 1


# ── Blueprints ───────────────────────────────────────────────────────────────


def _load_blueprint_summaries(company_id: int) -> list[dict]:
    section_count = (
        select(func.count(Section.id))
        .where(Section.blueprint_id == Blueprint.id)
        .correlate(Blueprint)
        .scalar_subquery()
    )
    field_count = (
        select(func.count(Field.id))
        .select_from(Field)
        .join(Section, Section.id == Field.section_id)
        .where(Section.blueprint_id == Blueprint.id)
        .correlate(Blueprint)
        .scalar_subquery()
    )
    rows = db.session.execute(
        select(
            Blueprint,
            section_count.label("section_count"),
            field_count.label("field_count"),
        )
        .where(Blueprint.company_id == company_id)
        .order_by(Blueprint.updated_at.desc(), Blueprint.id.desc())
    ).all()

    items = []
    for bp, n_sections, n_fields in rows:
        d = bp.to_dict()
        d["section_count"] = n_sections
        d["field_count"] = n_fields
        items.append(d)
    return items


def list_blueprints(company_id: int, status: str | None = None) -> list[dict]:
    """Return the company's blueprints, most recently updated first.

    The unfiltered list is cached per company; a ``status`` filter is
    applied on top of the cached list.
    """
    items = cache_service.get_cached_blueprint_list(company_id)
    if items is None:
        items = _load_blueprint_summaries(company_id)
        cache_service.set_cached_blueprint_list(company_id, items)
    if status:
        items = [i for i in items if i["status"] == status]
    return items


def get_blueprint(company_id: int, blueprint_id: int) -> dict:
    """Return one blueprint with its full section → field tree."""
    bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)
    d = bp.to_dict(include_sections=True)
    d["session_count"] = _session_count(bp.id)
    return d


def create_blueprint(company_id: int, data: dict) -> dict:
    """Create an empty draft blueprint (version 1).

    Raises:
        ValidationError: name missing or blank.
        ConflictError: name already used in the company.
    """
    with transaction():
        name = validate_blueprint_name(company_id, data.get("name"))
        bp = Blueprint(
            company_id=company_id,
            name=name,
            description=data.get("description"),
            version=1,
            status="draft",
        )
        db.session.add(bp)
        db.session.flush()
        bp_id = bp.id

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Blueprint created id=%s company_id=%s", bp_id, company_id)
    return bp.to_dict()


def update_blueprint(company_id: int, blueprint_id: int, data: dict) -> dict:
    """Update blueprint metadata (name, description).

    Raises:
        NotFoundError: blueprint not in the company.
        ValidationError: archived blueprint, or blank name.
        ConflictError: new name already used in the company.
    """
    with transaction():
        bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)
        if bp.status == "archived":
            raise ValidationError("Archived blueprints cannot be edited")

        for attr in _BLUEPRINT_UPDATABLE:
            if attr not in data:
                continue
            value = data[attr]
            if attr == "name":
                stripped = value.strip() if isinstance(value, str) else value
                if stripped == bp.name:
                    continue
                value = validate_blueprint_name(company_id, value)
            setattr(bp, attr, value)
        _touch(bp)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Blueprint updated id=%s company_id=%s", blueprint_id, company_id)
    return bp.to_dict()


def delete_blueprint(company_id: int, blueprint_id: int) -> None:
    """Delete a blueprint and its tree.

    Raises:
        NotFoundError: blueprint not in the company.
        ConflictError: at least one session is bound to this blueprint.
    """
    with transaction():
        bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)
        count = _session_count(bp.id)
        if count:
            raise ConflictError(
                f"Cannot delete blueprint: {count} session(s) use it",
                resource="Blueprint",
            )
        db.session.delete(bp)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Blueprint deleted id=%s company_id=%s", blueprint_id, company_id)


# ── Sections ─────────────────────────────────────────────────────────────────


def _validate_title(title) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Section title is required")
    return title.strip()


def create_section(company_id: int, blueprint_id: int, data: dict) -> dict:
    """Append a section at the end of the blueprint (order_index = max + 1)."""
    with transaction():
        bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)
        _assert_structure_editable(bp)
        section = Section(
            blueprint_id=bp.id,
            title=_validate_title(data.get("title")),
            description=data.get("description"),
            order_index=_next_section_index(bp.id),
        )
        db.session.add(section)
        _touch(bp)
        db.session.flush()

    cache_service.invalidate_blueprint_list(company_id)
    logger.info(
        "Section created id=%s blueprint_id=%s order_index=%s",
        section.id, blueprint_id, section.order_index,
    )
    return section.to_dict(include_fields=True)


def update_section(company_id: int, section_id: int, data: dict) -> dict:
    with transaction():
        section = get_section_scoped(section_id, company_id)
        _assert_structure_editable(section.blueprint)
        for attr in _SECTION_UPDATABLE:
            if attr not in data:
                continue
            value = data[attr]
            if attr == "title":
                value = _validate_title(value)
            setattr(section, attr, value)
        _touch(section.blueprint)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Section updated id=%s", section_id)
    return section.to_dict(include_fields=True)


def delete_section(company_id: int, section_id: int) -> None:
    """Delete a section; its fields (and their session values) cascade."""
    with transaction():
        section = get_section_scoped(section_id, company_id)
        bp = section.blueprint
        _assert_structure_editable(bp)
        db.session.delete(section)
        _touch(bp)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Section deleted id=%s", section_id)


def _parse_reorder_items(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list of {id, order_index}")
    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object with id and order_index")
        entity_id = item.get("id")
        order_index = item.get("order_index")
        if (
            not isinstance(entity_id, int) or isinstance(entity_id, bool)
            or not isinstance(order_index, int) or isinstance(order_index, bool)
            or order_index < 0
        ):
            raise ValidationError("id and order_index must be non-negative integers")
        parsed.append((entity_id, order_index))
    return parsed


def reorder_sections(company_id: int, items) -> int:
    """Apply ``[{id, order_index}, ...]`` in one transaction.

    Ownership of every row is checked inside the same transaction; a single
    foreign or missing id aborts the whole batch.

    Returns:
        Number of sections updated.
    """
    parsed = _parse_reorder_items(items)
    with transaction():
        for section_id, order_index in parsed:
            section = get_section_scoped(section_id, company_id)
            _assert_structure_editable(section.blueprint)
            section.order_index = order_index
            _touch(section.blueprint)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Sections reordered count=%s company_id=%s", len(parsed), company_id)
    return len(parsed)


# ── Fields ───────────────────────────────────────────────────────────────────


def _validate_field_attr(attr: str, value):
    if attr == "key":
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Field key is required")
        return value.strip()
    if attr == "label":
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Field label is required")
        return value.strip()
    if attr == "type":
        if value not in FIELD_TYPES:
            raise ValidationError("Field type must be ShortText, LongText, or Toggle")
        return value
    if attr == "span":
        if isinstance(value, bool) or value not in FIELD_SPANS:
            raise ValidationError("Field span must be 1 or 2")
        return value
    if attr == "required":
        if not isinstance(value, bool):
            raise ValidationError("Field required must be a boolean")
        return value
    return value


def create_field(company_id: int, section_id: int, data: dict) -> dict:
    """Append a field at the end of the section.

    When ``key`` is omitted it is derived from the label via ``generate_key``.
    """
    label = _validate_field_attr("label", data.get("label"))
    key = data.get("key")
    if key is None:
        key = generate_key(label)

    with transaction():
        section = get_section_scoped(section_id, company_id)
        _assert_structure_editable(section.blueprint)
        field = Field(
            section_id=section.id,
            key=_validate_field_attr("key", key),
            label=label,
            type=_validate_field_attr("type", data.get("type", "ShortText")),
            help_text=data.get("help_text"),
            placeholder=data.get("placeholder"),
            required=_validate_field_attr("required", data.get("required", False)),
            span=_validate_field_attr("span", data.get("span", 1)),
            order_index=_next_field_index(section.id),
        )
        db.session.add(field)
        _touch(section.blueprint)
        db.session.flush()

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Field created id=%s section_id=%s key=%s", field.id, section_id, field.key)
    return field.to_dict()


def update_field(company_id: int, field_id: int, data: dict) -> dict:
    with transaction():
        field = get_field_scoped(field_id, company_id)
        bp = field.section.blueprint
        _assert_structure_editable(bp)
        for attr in _FIELD_UPDATABLE:
            if attr in data:
                setattr(field, attr, _validate_field_attr(attr, data[attr]))
        _touch(bp)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Field updated id=%s", field_id)
    return field.to_dict()


def delete_field(company_id: int, field_id: int) -> None:
    with transaction():
        field = get_field_scoped(field_id, company_id)
        bp = field.section.blueprint
        _assert_structure_editable(bp)
        db.session.delete(field)
        _touch(bp)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Field deleted id=%s", field_id)


def reorder_fields(company_id: int, items) -> int:
    """Apply ``[{id, order_index}, ...]`` to fields in one transaction."""
    parsed = _parse_reorder_items(items)
    with transaction():
        for field_id, order_index in parsed:
            field = get_field_scoped(field_id, company_id)
            bp = field.section.blueprint
            _assert_structure_editable(bp)
            field.order_index = order_index
            _touch(bp)

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Fields reordered count=%s company_id=%s", len(parsed), company_id)
    return len(parsed)


def move_field(company_id: int, field_id: int, target_section_id) -> dict:
    """Move a field to the end of another section of the same blueprint.

    Moving to the section the field already lives in is a no-op.

    Raises:
        NotFoundError: field or target section not in the company.
        ValidationError: target section belongs to another blueprint.
    """
    if not isinstance(target_section_id, int) or isinstance(target_section_id, bool):
        raise ValidationError("target_section_id must be an integer")

    with transaction():
        field = get_field_scoped(field_id, company_id)
        if field.section_id == target_section_id:
            return field.to_dict()

        target = get_section_scoped(target_section_id, company_id)
        source_bp = field.section.blueprint
        if target.blueprint_id != source_bp.id:
            raise ValidationError("Target section must belong to the same blueprint")
        _assert_structure_editable(source_bp)

        field.order_index = _next_field_index(target.id)
        field.section_id = target.id
        _touch(source_bp)
        db.session.flush()

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Field moved id=%s to section_id=%s", field_id, target_section_id)
    return field.to_dict()


def get_field_in_blueprint(blueprint_id: int, field_id: int) -> Field:
    """Return a field only if it belongs to ``blueprint_id`` (else NotFoundError)."""
    field = db.session.execute(
        select(Field)
        .join(Section, Section.id == Field.section_id)
        .where(Field.id == field_id, Section.blueprint_id == blueprint_id)
    ).scalar_one_or_none()
    if field is None:
        raise NotFoundError(resource="Field", resource_id=field_id)
    return field
