"""Session service: collection runs bound to one published blueprint version.

Rules:
  - company_id is always an explicit parameter (never read from g).
  - db.session.commit() happens only through ``transaction()``.
  - Every value write recomputes session progress in the same transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from intake.ai.suggestion_queue import SuggestionQueue
from intake.core.exceptions import ConflictError, ValidationError
from intake.models import db
from intake.models.blueprint import Blueprint
from intake.models.session import SESSION_STATUSES, Session, SessionFieldValue
from intake.services.blueprint_service import get_field_in_blueprint
from intake.services.helpers.scoped_queries import get_scoped
from intake.services.helpers.transactions import transaction
from intake.services.progress import recompute_session_progress, section_progress

logger = logging.getLogger(__name__)

_TOGGLE_VALUES = ("true", "false", "")


def _validate_session_name(company_id: int, name, *, exclude_id: int | None = None) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Session name is required")
    name = name.strip()
    if len(name) > 255:
        raise ValidationError("Session name must be at most 255 characters")
    stmt = select(func.count(Session.id)).where(
        Session.company_id == company_id, Session.name == name
    )
    if exclude_id is not None:
        stmt = stmt.where(Session.id != exclude_id)
    if db.session.execute(stmt).scalar_one() > 0:
        raise ConflictError("A session with this name already exists", resource="Session")
    return name


def list_sessions(
    company_id: int,
    *,
    status: str | None = None,
    blueprint_id: int | None = None,
) -> list[dict]:
    """Company sessions, most recently updated first."""
    stmt = select(Session).where(Session.company_id == company_id)
    if status:
        stmt = stmt.where(Session.status == status)
    if blueprint_id is not None:
        stmt = stmt.where(Session.blueprint_id == blueprint_id)
    stmt = stmt.order_by(Session.updated_at.desc(), Session.id.desc())
    return [s.to_dict() for s in db.session.execute(stmt).scalars().all()]


def create_session(company_id: int, data: dict, created_by: int | None = None) -> dict:
    """Start a session against a published blueprint.

    Raises:
        ValidationError: missing name/blueprint_id, or blueprint not published.
        NotFoundError: blueprint not in the company.
        ConflictError: session name already used in the company.
    """
    blueprint_id = data.get("blueprint_id")
    if not isinstance(blueprint_id, int) or isinstance(blueprint_id, bool):
        raise ValidationError("blueprint_id is required")

    with transaction():
        name = _validate_session_name(company_id, data.get("name"))
        bp = get_scoped(Blueprint, blueprint_id, company_id=company_id)
        if bp.status != "published":
            raise ValidationError("Can only create sessions from published blueprints")

        session = Session(
            company_id=company_id,
            blueprint_id=bp.id,
            name=name,
            status="in_progress",
            completion_percent=0,
            created_by=created_by,
        )
        db.session.add(session)
        db.session.flush()
        recompute_session_progress(session.id)
        result = session.to_dict()

    logger.info(
        "Session created id=%s company_id=%s blueprint_id=%s",
        result["id"], company_id, blueprint_id,
    )
    return result


def get_session(company_id: int, session_id: int) -> dict:
    """Session with its field values, per-section progress and pending suggestion count."""
    session = get_scoped(Session, session_id, company_id=company_id)
    d = session.to_dict()
    d["sections"] = section_progress(session)
    d["values"] = [
        v.to_dict()
        for v in session.values.order_by(SessionFieldValue.field_id).all()
    ]
    d["pending_suggestions"] = SuggestionQueue.get_pending_count(session.id)
    return d


def update_session(company_id: int, session_id: int, data: dict) -> dict:
    """Rename, archive or restore a session.

    ``status="archived"`` freezes the session status. Setting ``in_progress``
    or ``completed`` restores it; the stored status is then derived from
    progress, so a session is only ``completed`` at 100 %.
    """
    if "name" not in data and "status" not in data:
        raise ValidationError("No valid fields to update")

    with transaction():
        session = get_scoped(Session, session_id, company_id=company_id)
        if "name" in data:
            session.name = _validate_session_name(company_id, data["name"], exclude_id=session.id)
        if "status" in data:
            status = data["status"]
            if status not in SESSION_STATUSES:
                raise ValidationError(
                    f"Status must be one of: {', '.join(sorted(SESSION_STATUSES))}"
                )
            if status == "archived":
                session.status = "archived"
            else:
                session.status = "in_progress"
                db.session.flush()
                recompute_session_progress(session.id)
        db.session.flush()
        result = session.to_dict()

    logger.info("Session updated id=%s status=%s", session_id, result["status"])
    return result


def delete_session(company_id: int, session_id: int) -> None:
    with transaction():
        session = get_scoped(Session, session_id, company_id=company_id)
        db.session.delete(session)
    logger.info("Session deleted id=%s company_id=%s", session_id, company_id)


def set_field_value(company_id: int, session_id: int, field_id: int, value) -> dict:
    """Write a human-entered value (reviewed) and recompute progress.

    Upserts the (session, field) row. Toggle fields accept ``"true"``,
    ``"false"``, ``""`` or None.

    Returns:
        ``{"value": {...}, "completion_percent": int, "status": str}``
    """
    if value is not None and not isinstance(value, str):
        raise ValidationError("Field value must be a string or null")

    with transaction():
        session = get_scoped(Session, session_id, company_id=company_id)
        field = get_field_in_blueprint(session.blueprint_id, field_id)
        if field.type == "Toggle" and value not in _TOGGLE_VALUES and value is not None:
            raise ValidationError("Toggle value must be 'true' or 'false'")

        row = db.session.execute(
            select(SessionFieldValue).where(
                SessionFieldValue.session_id == session.id,
                SessionFieldValue.field_id == field.id,
            )
        ).scalar_one_or_none()
        if row is None:
            row = SessionFieldValue(session_id=session.id, field_id=field.id)
            db.session.add(row)
        row.value = value
        row.reviewed = True
        db.session.flush()

        progress = recompute_session_progress(session.id)
        result = {"value": row.to_dict(), **progress}

    logger.info(
        "Field value written session_id=%s field_id=%s percent=%s status=%s",
        session_id, field_id, result["completion_percent"], result["status"],
    )
    return result
