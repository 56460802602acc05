"""Session blueprint: collection runs, value writes and token resolution.

Endpoint groups:
  Sessions        GET/POST        /api/v1/sessions
                  GET/PUT/DELETE  /api/v1/sessions/<id>
  Values          PUT             /api/v1/sessions/<id>/fields/<field_id>
  Tokens          POST            /api/v1/sessions/<id>/tokens/resolve

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

import intake.services.session_service as ss
from intake.auth import require_auth, require_role
from intake.blueprints import BadRequest, json_body, register_error_handlers
from intake.services.token_resolver import resolve_tokens

logger = logging.getLogger(__name__)

session_bp = Blueprint("sessions", __name__, url_prefix="/api/v1")
register_error_handlers(session_bp)


@session_bp.route("/sessions", methods=["GET"])
@require_auth
def list_sessions():
    """Query params: status?, blueprint_id?"""
    items = ss.list_sessions(
        g.identity.company_id,
        status=request.args.get("status"),
        blueprint_id=request.args.get("blueprint_id", type=int),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@session_bp.route("/sessions", methods=["POST"])
@require_auth
@require_role("editor")
def create_session():
    """Body: { name, blueprint_id }. The blueprint must be published (201)."""
    session = ss.create_session(g.identity.company_id, json_body(), created_by=g.identity.id)
    return jsonify(session), 201


@session_bp.route("/sessions/<int:session_id>", methods=["GET"])
@require_auth
def get_session(session_id):
    """Session with values, per-section progress and pending suggestion count."""
    return jsonify(ss.get_session(g.identity.company_id, session_id)), 200


@session_bp.route("/sessions/<int:session_id>", methods=["PUT"])
@require_auth
@require_role("editor")
def update_session(session_id):
    """Body: { name?, status? (in_progress | completed | archived) }."""
    return jsonify(ss.update_session(g.identity.company_id, session_id, json_body())), 200


@session_bp.route("/sessions/<int:session_id>", methods=["DELETE"])
@require_auth
@require_role("editor")
def delete_session(session_id):
    ss.delete_session(g.identity.company_id, session_id)
    return "", 204


@session_bp.route("/sessions/<int:session_id>/fields/<int:field_id>", methods=["PUT"])
@require_auth
@require_role("editor")
def set_field_value(session_id, field_id):
    """Body: { value }. Returns the stored value plus refreshed progress."""
    data = json_body()
    if "value" not in data:
        raise BadRequest("Field value is required")
    result = ss.set_field_value(g.identity.company_id, session_id, field_id, data["value"])
    return jsonify(result), 200


@session_bp.route("/sessions/<int:session_id>/tokens/resolve", methods=["POST"])
@require_auth
def resolve_session_tokens(session_id):
    """Body: { template }. Returns { resolved, empty_tokens, missing_tokens }."""
    data = json_body()
    if "template" not in data:
        raise BadRequest("template is required")
    return jsonify(resolve_tokens(data["template"], g.identity.company_id, session_id)), 200
