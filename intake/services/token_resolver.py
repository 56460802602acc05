"""
Prompt template token resolution against one session's values.

Supported tokens:
    {{field_key}}         value of the field (simple form)
    {{field:field_key}}   value of the field (prefixed form)
    {{fields_json}}       JSON object of every field value, keyed by field key

Rendering:
    Toggle      "true" → "Yes", anything else non-empty → "No"
                (JSON: true / false / null)
    null / ""   → "" and the token is reported in ``empty_tokens``
    unknown key → "[Field not found: key]", reported in ``missing_tokens``

Keys are not unique within a blueprint; the last field in section/field
order wins.
"""

import json
import logging
import re

from sqlalchemy import and_, select

from intake.core.exceptions import ValidationError
from intake.models import db
from intake.models.blueprint import Field, Section
from intake.models.session import Session, SessionFieldValue
from intake.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)

FIELDS_JSON = "fields_json"
_TOKEN_RE = re.compile(r"\{\{(field:)?([a-z0-9_-]+)\}\}", re.IGNORECASE)


def parse_tokens(template: str) -> list[dict]:
    """Return tokens in template order: ``[{type, key, raw, start, end}, ...]``."""
    tokens = []
    for m in _TOKEN_RE.finditer(template):
        prefixed, key = m.group(1), m.group(2)
        token_type = "fields_json" if not prefixed and key.lower() == FIELDS_JSON else "field"
        tokens.append({
            "type": token_type,
            "key": key,
            "raw": m.group(0),
            "start": m.start(),
            "end": m.end(),
        })
    return tokens


def _session_fields(session: Session) -> dict[str, dict]:
    rows = db.session.execute(
        select(Field.key, Field.type, SessionFieldValue.value)
        .join(Section, Section.id == Field.section_id)
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
    fields: dict[str, dict] = {}
    for key, field_type, value in rows:
        fields[key] = {"type": field_type, "value": value}
    return fields


def _render_field(field: dict) -> str:
    value = field["value"]
    if value is None or value == "":
        return ""
    if field["type"] == "Toggle":
        return "Yes" if value == "true" else "No"
    return value


def _json_value(field: dict):
    value = field["value"]
    if field["type"] == "Toggle":
        return {"true": True, "false": False}.get(value)
    return value


def render(template: str, fields: dict[str, dict]) -> dict:
    """Resolve ``template`` against a ``{key: {type, value}}`` mapping."""
    pieces = []
    empty_tokens: list[str] = []
    missing_tokens: list[str] = []
    cursor = 0

    for token in parse_tokens(template):
        pieces.append(template[cursor:token["start"]])
        cursor = token["end"]

        if token["type"] == "fields_json":
            payload = {key: _json_value(f) for key, f in fields.items()}
            pieces.append(json.dumps(payload, indent=2))
            continue

        field = fields.get(token["key"])
        if field is None:
            pieces.append(f"[Field not found: {token['key']}]")
            missing_tokens.append(token["raw"])
            continue

        text = _render_field(field)
        if text == "":
            empty_tokens.append(token["raw"])
        pieces.append(text)

    pieces.append(template[cursor:])
    return {
        "resolved": "".join(pieces),
        "empty_tokens": empty_tokens,
        "missing_tokens": missing_tokens,
    }


def resolve_tokens(template, company_id: int, session_id: int) -> dict:
    """Resolve a prompt template against a session of ``company_id``."""
    if not isinstance(template, str):
        raise ValidationError("template must be a string")
    session = get_scoped(Session, session_id, company_id=company_id)
    result = render(template, _session_fields(session))
    logger.debug(
        "Tokens resolved session_id=%s missing=%d empty=%d",
        session_id, len(result["missing_tokens"]), len(result["empty_tokens"]),
    )
    return result
