"""
Health check blueprint.

Endpoints:
    GET /api/v1/health  liveness with database and cache status
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from intake.models import db
from intake.services import cache_service

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    """200 when the database answers, 503 otherwise. Cache is informational."""
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        checks["database"] = {"status": "error"}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    checks["cache"] = cache_service.health_check()

    status = "ok" if overall else "degraded"
    return jsonify({"status": status, "app": "intake", "checks": checks}), 200 if overall else 503
