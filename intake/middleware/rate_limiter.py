"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in intake/__init__.py with no default limits; publish and
duplicate carry their own route-level limit (PUBLISH_RATE_LIMIT).

Usage:
    from intake.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import current_app

logger = logging.getLogger(__name__)

WRITE_LIMIT = "120/minute"


def publish_limit() -> str:
    """Route-level limit for publish / duplicate (copies whole trees)."""
    return current_app.config.get("PUBLISH_RATE_LIMIT", "30 per minute")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Schema / session / suggestion endpoints: 120/minute
        - Health check: exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("blueprints", "sessions", "suggestions"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: api=%s publish=%s",
                    WRITE_LIMIT, app.config.get("PUBLISH_RATE_LIMIT"))
