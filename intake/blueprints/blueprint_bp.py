"""Blueprint schema blueprint: blueprints, sections, fields, publish, duplicate.

Endpoint groups:
  Blueprints      GET/POST        /api/v1/blueprints
                  GET/PUT/DELETE  /api/v1/blueprints/<id>
  Publication     POST            /api/v1/blueprints/<id>/publish
                  POST            /api/v1/blueprints/<id>/duplicate
  Sections        POST            /api/v1/blueprints/<id>/sections
                  PUT             /api/v1/sections/reorder
                  PUT/DELETE      /api/v1/sections/<id>
  Fields          POST            /api/v1/sections/<id>/fields
                  PUT             /api/v1/fields/reorder
                  PUT/DELETE      /api/v1/fields/<id>
                  PUT             /api/v1/fields/<id>/move

company_id always comes from the authenticated identity, never the request.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

import intake.services.blueprint_service as bps
from intake import limiter
from intake.auth import require_auth, require_role
from intake.blueprints import BadRequest, json_body, register_error_handlers
from intake.middleware.rate_limiter import publish_limit
from intake.services import publication

logger = logging.getLogger(__name__)

blueprint_bp = Blueprint("blueprints", __name__, url_prefix="/api/v1")
register_error_handlers(blueprint_bp)


def _company_id() -> int:
    return g.identity.company_id


# ═════════════════════════════════════════════════════════════════════════
# Blueprints
# ═════════════════════════════════════════════════════════════════════════


@blueprint_bp.route("/blueprints", methods=["GET"])
@require_auth
def list_blueprints():
    """List the company's blueprints with section/field counts.

    Query params: status (optional: draft | published | archived)
    """
    items = bps.list_blueprints(_company_id(), status=request.args.get("status"))
    return jsonify({"items": items, "total": len(items)}), 200


@blueprint_bp.route("/blueprints", methods=["POST"])
@require_auth
@require_role("editor")
def create_blueprint():
    """Body: { name, description? }. Returns the draft blueprint (201)."""
    bp = bps.create_blueprint(_company_id(), json_body())
    return jsonify(bp), 201


@blueprint_bp.route("/blueprints/<int:blueprint_id>", methods=["GET"])
@require_auth
def get_blueprint(blueprint_id):
    return jsonify(bps.get_blueprint(_company_id(), blueprint_id)), 200


@blueprint_bp.route("/blueprints/<int:blueprint_id>", methods=["PUT"])
@require_auth
@require_role("editor")
def update_blueprint(blueprint_id):
    """Body: { name?, description? }."""
    return jsonify(bps.update_blueprint(_company_id(), blueprint_id, json_body())), 200


@blueprint_bp.route("/blueprints/<int:blueprint_id>", methods=["DELETE"])
@require_auth
@require_role("editor")
def delete_blueprint(blueprint_id):
    bps.delete_blueprint(_company_id(), blueprint_id)
    return "", 204


@blueprint_bp.route("/blueprints/<int:blueprint_id>/publish", methods=["POST"])
@require_auth
@require_role("editor")
@limiter.limit(publish_limit)
def publish_blueprint(blueprint_id):
    """Publish a draft in place, or bump a published blueprint to a new version."""
    return jsonify(publication.publish_blueprint(_company_id(), blueprint_id)), 200


@blueprint_bp.route("/blueprints/<int:blueprint_id>/duplicate", methods=["POST"])
@require_auth
@require_role("editor")
@limiter.limit(publish_limit)
def duplicate_blueprint(blueprint_id):
    """Body: { name }. Returns the new draft copy (201)."""
    data = json_body()
    copy = publication.duplicate_blueprint(_company_id(), blueprint_id, data.get("name"))
    return jsonify(copy), 201


# ═════════════════════════════════════════════════════════════════════════
# Sections
# ═════════════════════════════════════════════════════════════════════════


@blueprint_bp.route("/blueprints/<int:blueprint_id>/sections", methods=["POST"])
@require_auth
@require_role("editor")
def create_section(blueprint_id):
    """Body: { title, description? }. Appends at the end (201)."""
    section = bps.create_section(_company_id(), blueprint_id, json_body())
    return jsonify(section), 201


@blueprint_bp.route("/sections/reorder", methods=["PUT"])
@require_auth
@require_role("editor")
def reorder_sections():
    """Body: { sections: [{id, order_index}, ...] }."""
    count = bps.reorder_sections(_company_id(), json_body().get("sections"))
    return jsonify({"count": count}), 200


@blueprint_bp.route("/sections/<int:section_id>", methods=["PUT"])
@require_auth
@require_role("editor")
def update_section(section_id):
    return jsonify(bps.update_section(_company_id(), section_id, json_body())), 200


@blueprint_bp.route("/sections/<int:section_id>", methods=["DELETE"])
@require_auth
@require_role("editor")
def delete_section(section_id):
    bps.delete_section(_company_id(), section_id)
    return "", 204


# ═════════════════════════════════════════════════════════════════════════
# Fields
# ═════════════════════════════════════════════════════════════════════════


@blueprint_bp.route("/sections/<int:section_id>/fields", methods=["POST"])
@require_auth
@require_role("editor")
def create_field(section_id):
    """Body: { label, key?, type?, help_text?, placeholder?, required?, span? }."""
    field = bps.create_field(_company_id(), section_id, json_body())
    return jsonify(field), 201


@blueprint_bp.route("/fields/reorder", methods=["PUT"])
@require_auth
@require_role("editor")
def reorder_fields():
    """Body: { fields: [{id, order_index}, ...] }."""
    count = bps.reorder_fields(_company_id(), json_body().get("fields"))
    return jsonify({"count": count}), 200


@blueprint_bp.route("/fields/<int:field_id>", methods=["PUT"])
@require_auth
@require_role("editor")
def update_field(field_id):
    return jsonify(bps.update_field(_company_id(), field_id, json_body())), 200


@blueprint_bp.route("/fields/<int:field_id>", methods=["DELETE"])
@require_auth
@require_role("editor")
def delete_field(field_id):
    bps.delete_field(_company_id(), field_id)
    return "", 204


@blueprint_bp.route("/fields/<int:field_id>/move", methods=["PUT"])
@require_auth
@require_role("editor")
def move_field(field_id):
    """Body: { section_id }. Appends the field to the target section."""
    data = json_body()
    if "section_id" not in data:
        raise BadRequest("section_id is required")
    return jsonify(bps.move_field(_company_id(), field_id, data["section_id"])), 200
