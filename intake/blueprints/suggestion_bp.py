"""Suggestion review blueprint.

Endpoints:
    GET   /api/v1/sessions/<id>/suggestions
    PUT   /api/v1/sessions/<id>/suggestions/<sid>/accept
    PUT   /api/v1/sessions/<id>/suggestions/<sid>/reject
    PUT   /api/v1/sessions/<id>/suggestions/accept-all
    PUT   /api/v1/sessions/<id>/suggestions/reject-all
    GET   /api/v1/sessions/<id>/fields/<field_id>/suggestion
    POST  /api/v1/sessions/<id>/fields/<field_id>/suggestion

Reviewing is an editor task; every endpoint requires the editor role.
"""

import logging

from flask import Blueprint, g, jsonify

from intake.ai.suggestion_queue import SuggestionQueue
from intake.auth import require_auth, require_role
from intake.blueprints import BadRequest, json_body, register_error_handlers

logger = logging.getLogger(__name__)

suggestion_bp = Blueprint("suggestions", __name__, url_prefix="/api/v1/sessions")
register_error_handlers(suggestion_bp)


@suggestion_bp.route("/<int:session_id>/suggestions", methods=["GET"])
@require_auth
@require_role("editor")
def list_suggestions(session_id):
    items = SuggestionQueue.list_unreviewed(g.identity.company_id, session_id)
    return jsonify({"items": items, "total": len(items)}), 200


@suggestion_bp.route("/<int:session_id>/suggestions/<int:suggestion_id>/accept", methods=["PUT"])
@require_auth
@require_role("editor")
def accept_suggestion(session_id, suggestion_id):
    result = SuggestionQueue.accept(g.identity.company_id, session_id, suggestion_id)
    return jsonify(result), 200


@suggestion_bp.route("/<int:session_id>/suggestions/<int:suggestion_id>/reject", methods=["PUT"])
@require_auth
@require_role("editor")
def reject_suggestion(session_id, suggestion_id):
    result = SuggestionQueue.reject(g.identity.company_id, session_id, suggestion_id)
    return jsonify(result), 200


@suggestion_bp.route("/<int:session_id>/suggestions/accept-all", methods=["PUT"])
@require_auth
@require_role("editor")
def accept_all_suggestions(session_id):
    count = SuggestionQueue.accept_all(g.identity.company_id, session_id)
    return jsonify({"count": count}), 200


@suggestion_bp.route("/<int:session_id>/suggestions/reject-all", methods=["PUT"])
@require_auth
@require_role("editor")
def reject_all_suggestions(session_id):
    count = SuggestionQueue.reject_all(g.identity.company_id, session_id)
    return jsonify({"count": count}), 200


@suggestion_bp.route("/<int:session_id>/fields/<int:field_id>/suggestion", methods=["GET"])
@require_auth
@require_role("editor")
def get_field_suggestion(session_id, field_id):
    suggestion = SuggestionQueue.get_for_field(g.identity.company_id, session_id, field_id)
    return jsonify({"suggestion": suggestion}), 200


@suggestion_bp.route("/<int:session_id>/fields/<int:field_id>/suggestion", methods=["POST"])
@require_auth
@require_role("editor")
def record_field_suggestion(session_id, field_id):
    """Body: { value, confidence?, source_id? }.

    201 with the suggestion, or 200 with ``{"suggestion": null}`` when the
    field already holds a value.
    """
    data = json_body()
    if "value" not in data:
        raise BadRequest("value is required")
    suggestion = SuggestionQueue.record(
        g.identity.company_id,
        session_id,
        field_id,
        data["value"],
        confidence=data.get("confidence"),
        source_id=data.get("source_id"),
    )
    if suggestion is None:
        return jsonify({"suggestion": None}), 200
    return jsonify({"suggestion": suggestion}), 201
