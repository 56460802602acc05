"""
Session progress calculator.

    R = required fields of the session's bound blueprint
    F = required fields whose value row holds a non-null, non-empty string
    completion_percent = round_half_up(100 * F / R), or 100 when R == 0
    status = completed iff completion_percent == 100, else in_progress

Archived sessions keep their status; only the percentage is refreshed.
The session row's updated_at is stamped on every recompute, whether or not
the percentage moved.

``recompute_session_progress`` only flushes: it runs inside the unit of work
of the write that changed the values (value write, accept, reject).
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, func, select

from intake.core.exceptions import NotFoundError
from intake.models import db
from intake.models.blueprint import Field, Section
from intake.models.session import Session, SessionFieldValue

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_filled(value) -> bool:
    """A value counts as filled when it is present and not the empty string."""
    return value is not None and value != ""


def percent(filled: int, total: int) -> int:
    """Integer percentage rounded half-up; an empty denominator is 100 %."""
    if total <= 0:
        return 100
    return (200 * filled + total) // (2 * total)


def _required_counts(session: Session) -> tuple[int, int]:
    required_total = db.session.execute(
        select(func.count(Field.id))
        .join(Section, Section.id == Field.section_id)
        .where(Section.blueprint_id == session.blueprint_id, Field.required.is_(True))
    ).scalar_one()

    required_filled = db.session.execute(
        select(func.count(Field.id))
        .join(Section, Section.id == Field.section_id)
        .join(
            SessionFieldValue,
            and_(
                SessionFieldValue.field_id == Field.id,
                SessionFieldValue.session_id == session.id,
            ),
        )
        .where(
            Section.blueprint_id == session.blueprint_id,
            Field.required.is_(True),
            SessionFieldValue.value.is_not(None),
            SessionFieldValue.value != "",
        )
    ).scalar_one()
    return required_total, required_filled


def recompute_session_progress(session_id: int) -> dict:
    """Recompute and persist a session's completion percentage and status.

    Idempotent: calling it twice without intervening writes yields the same
    row state.

    Returns:
        ``{"completion_percent": int, "status": str}`` as persisted.

    Raises:
        NotFoundError: unknown session id.
    """
    session = db.session.get(Session, session_id)
    if session is None:
        raise NotFoundError(resource="Session", resource_id=session_id)

    required_total, required_filled = _required_counts(session)
    completion = percent(required_filled, required_total)

    session.completion_percent = completion
    if session.status != "archived":
        session.status = "completed" if completion == 100 else "in_progress"
    session.updated_at = _utcnow()
    db.session.flush()

    logger.debug(
        "Progress recomputed session_id=%s filled=%s/%s percent=%s status=%s",
        session.id, required_filled, required_total, completion, session.status,
    )
    return {"completion_percent": session.completion_percent, "status": session.status}


def section_progress(session: Session) -> list[dict]:
    """Per-section progress of a session, in section order.

    Each entry carries ``required_count``, ``required_filled_count``,
    ``total_count``, ``total_filled_count``, ``completion_percentage``
    (required fields only) and ``total_completion_percentage`` (all fields).
    """
    rows = db.session.execute(
        select(
            Section.id,
            Section.title,
            Section.order_index,
            Field.id,
            Field.required,
            SessionFieldValue.value,
        )
        .select_from(Section)
        .outerjoin(Field, Field.section_id == Section.id)
        .outerjoin(
            SessionFieldValue,
            and_(
                SessionFieldValue.field_id == Field.id,
                SessionFieldValue.session_id == session.id,
            ),
        )
        .where(Section.blueprint_id == session.blueprint_id)
        .order_by(Section.order_index, Section.id, Field.order_index, Field.id)
    ).all()

    stats: dict[int, dict] = {}
    for section_id, title, order_index, field_id, required, value in rows:
        entry = stats.setdefault(section_id, {
            "section_id": section_id,
            "title": title,
            "order_index": order_index,
            "required_count": 0,
            "required_filled_count": 0,
            "total_count": 0,
            "total_filled_count": 0,
        })
        if field_id is None:
            continue
        filled = is_filled(value)
        entry["total_count"] += 1
        entry["total_filled_count"] += int(filled)
        if required:
            entry["required_count"] += 1
            entry["required_filled_count"] += int(filled)

    result = []
    for entry in stats.values():
        entry["completion_percentage"] = percent(
            entry["required_filled_count"], entry["required_count"]
        )
        entry["total_completion_percentage"] = percent(
            entry["total_filled_count"], entry["total_count"]
        )
        result.append(entry)
    return result
