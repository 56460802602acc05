"""
Suggestion Queue Service.

An AI suggestion is a SessionFieldValue row with ``reviewed=False``:

    unreviewed ──accept──▶ reviewed, value kept
    unreviewed ──reject──▶ reviewed, value = None

Every review recomputes the session's progress in the same transaction.

Usage:
    from intake.ai.suggestion_queue import SuggestionQueue
    SuggestionQueue.record(company_id, session_id, field_id, "Acme", confidence=0.82)
    for s in SuggestionQueue.list_unreviewed(company_id, session_id):
        SuggestionQueue.accept(company_id, session_id, s["id"])
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from intake.core.exceptions import ValidationError
from intake.models import db
from intake.models.blueprint import Field, Section
from intake.models.session import Session, SessionFieldValue
from intake.services.blueprint_service import get_field_in_blueprint
from intake.services.helpers.scoped_queries import get_scoped
from intake.services.helpers.transactions import transaction
from intake.services.progress import recompute_session_progress

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def _owned_session(company_id: int, session_id: int) -> Session:
    return get_scoped(Session, session_id, company_id=company_id)


def _owned_suggestion(session: Session, suggestion_id: int) -> SessionFieldValue:
    return get_scoped(
        SessionFieldValue, suggestion_id, session_id=session.id, resource="Suggestion"
    )


class SuggestionQueue:
    """Review workflow for AI-suggested field values."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def record(
        company_id: int,
        session_id: int,
        field_id: int,
        value: str | None,
        *,
        confidence: float | None = None,
        source_id: int | None = None,
    ) -> dict | None:
        """
        Record an unreviewed suggestion for one field.

        A value row that already exists for the field (human-entered or an
        earlier suggestion) is left untouched.

        Returns:
            The created suggestion dict, or None when a row already existed.
        """
        if confidence is not None:
            if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
                raise ValidationError("confidence must be a number")
            if not 0 <= confidence <= 1:
                raise ValidationError("confidence must be between 0 and 1")
        if value is not None and not isinstance(value, str):
            raise ValidationError("value must be a string or null")

        with transaction():
            session = _owned_session(company_id, session_id)
            get_field_in_blueprint(session.blueprint_id, field_id)

            existing = db.session.execute(
                select(SessionFieldValue.id).where(
                    SessionFieldValue.session_id == session.id,
                    SessionFieldValue.field_id == field_id,
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.info(
                    "Suggestion skipped session_id=%s field_id=%s: value row exists",
                    session_id, field_id,
                )
                return None

            suggestion = SessionFieldValue(
                session_id=session.id,
                field_id=field_id,
                value=value,
                confidence=None if confidence is None else float(confidence),
                source_id=source_id,
                reviewed=False,
            )
            db.session.add(suggestion)
            db.session.flush()
            recompute_session_progress(session.id)
            result = suggestion.to_dict()

        logger.info(
            "Created suggestion #%d for session_id=%s field_id=%s",
            result["id"], session_id, field_id,
        )
        return result

    # ── Review Actions ────────────────────────────────────────────────────

    @staticmethod
    def accept(company_id: int, session_id: int, suggestion_id: int) -> dict:
        """Accept a suggestion: mark reviewed, keep the value."""
        with transaction():
            session = _owned_session(company_id, session_id)
            s = _owned_suggestion(session, suggestion_id)
            s.reviewed = True
            s.updated_at = _utcnow()
            db.session.flush()
            progress = recompute_session_progress(session.id)
            result = s.to_dict()

        logger.info("Suggestion #%d accepted session_id=%s", suggestion_id, session_id)
        result["session_progress"] = progress
        return result

    @staticmethod
    def reject(company_id: int, session_id: int, suggestion_id: int) -> dict:
        """Reject a suggestion: mark reviewed and discard the value."""
        with transaction():
            session = _owned_session(company_id, session_id)
            s = _owned_suggestion(session, suggestion_id)
            s.reviewed = True
            s.value = None
            s.updated_at = _utcnow()
            db.session.flush()
            progress = recompute_session_progress(session.id)
            result = s.to_dict()

        logger.info("Suggestion #%d rejected session_id=%s", suggestion_id, session_id)
        result["session_progress"] = progress
        return result

    @staticmethod
    def _review_all(company_id: int, session_id: int, values: dict) -> tuple[int, dict]:
        with transaction():
            session = _owned_session(company_id, session_id)
            count = SessionFieldValue.query.filter(
                SessionFieldValue.session_id == session.id,
                SessionFieldValue.reviewed.is_(False),
            ).update(
                {"reviewed": True, "updated_at": _utcnow(), **values},
                synchronize_session="fetch",
            )
            progress = recompute_session_progress(session.id)
        return count, progress

    @staticmethod
    def accept_all(company_id: int, session_id: int) -> int:
        """Accept every unreviewed suggestion of a session. Returns the count."""
        count, _ = SuggestionQueue._review_all(company_id, session_id, {})
        logger.info("Accepted %d suggestion(s) session_id=%s", count, session_id)
        return count

    @staticmethod
    def reject_all(company_id: int, session_id: int) -> int:
        """Reject every unreviewed suggestion of a session. Returns the count."""
        count, _ = SuggestionQueue._review_all(company_id, session_id, {"value": None})
        logger.info("Rejected %d suggestion(s) session_id=%s", count, session_id)
        return count

    # ── Queries ───────────────────────────────────────────────────────────

    @staticmethod
    def list_unreviewed(company_id: int, session_id: int) -> list[dict]:
        """
        Unreviewed suggestions of a session with field/section metadata,
        in form order (section order, field order, row id).
        """
        session = _owned_session(company_id, session_id)
        rows = db.session.execute(
            select(
                SessionFieldValue,
                Field.key,
                Field.label,
                Field.type,
                Field.order_index,
                Section.title,
                Section.order_index,
            )
            .join(Field, Field.id == SessionFieldValue.field_id)
            .join(Section, Section.id == Field.section_id)
            .where(
                SessionFieldValue.session_id == session.id,
                SessionFieldValue.reviewed.is_(False),
            )
            .order_by(Section.order_index, Field.order_index, SessionFieldValue.id)
        ).all()

        items = []
        for sfv, key, label, field_type, field_order, section_title, section_order in rows:
            d = sfv.to_dict()
            d.update({
                "field_key": key,
                "field_label": label,
                "field_type": field_type,
                "field_order_index": field_order,
                "section_title": section_title,
                "section_order_index": section_order,
            })
            items.append(d)
        return items

    @staticmethod
    def get_for_field(company_id: int, session_id: int, field_id: int) -> dict | None:
        """The unreviewed suggestion for one field, or None."""
        session = _owned_session(company_id, session_id)
        s = db.session.execute(
            select(SessionFieldValue).where(
                SessionFieldValue.session_id == session.id,
                SessionFieldValue.field_id == field_id,
                SessionFieldValue.reviewed.is_(False),
            )
        ).scalar_one_or_none()
        return s.to_dict() if s else None

    @staticmethod
    def get_pending_count(session_id: int) -> int:
        """Number of unreviewed suggestions of a session."""
        return db.session.execute(
            select(func.count(SessionFieldValue.id)).where(
                SessionFieldValue.session_id == session_id,
                SessionFieldValue.reviewed.is_(False),
            )
        ).scalar_one()
