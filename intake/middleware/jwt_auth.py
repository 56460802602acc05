"""
JWT Auth Middleware: parses the bearer token, sets g.jwt_*.

    Authorization: Bearer <token>  →  g.jwt_user_id, g.jwt_company_id, g.jwt_role

The middleware never rejects a request itself: an absent, expired or
invalid token leaves g.jwt_* empty and ``require_auth`` answers 401.
"""

import logging

import jwt as pyjwt
from flask import g, request

from intake.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_company_id = None
        g.jwt_role = None
        g.jwt_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            g.jwt_error = "Invalid token"
            return

        try:
            g.jwt_user_id = int(payload["sub"])
        except (TypeError, ValueError):
            g.jwt_error = "Invalid token"
            return
        g.jwt_company_id = payload["company_id"]
        g.jwt_role = payload.get("role")
