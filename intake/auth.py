"""
Authentication & authorization decorators.

Provides:
    - ``require_auth``: the request must carry a valid bearer JWT
    - ``require_role``: minimum member role, owner > editor > viewer
    - ``current_identity()``: the authenticated member as an ``Identity``

Security model:
    - All /api/v1/* endpoints except /api/v1/health require a token
    - Reads are open to every member of the company
    - Mutations require the editor role (owners inherit it)
"""

import functools
import logging
from typing import NamedTuple, Optional

from flask import g, jsonify

from intake.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"owner", "editor", "viewer"}

# Role hierarchy: owner > editor > viewer
ROLE_HIERARCHY = {
    "owner": {"owner", "editor", "viewer"},
    "editor": {"editor", "viewer"},
    "viewer": {"viewer"},
}


class Identity(NamedTuple):
    id: int
    company_id: int
    role: str


def current_identity() -> Optional[Identity]:
    """Return the authenticated member of the current request, or None."""
    user_id = getattr(g, "jwt_user_id", None)
    company_id = getattr(g, "jwt_company_id", None)
    role = getattr(g, "jwt_role", None)
    if user_id is None or company_id is None or role not in ROLES:
        return None
    return Identity(id=user_id, company_id=company_id, role=role)


# ── Authentication decorator ─────────────────────────────────────────────────

def require_auth(f):
    """
    Decorator: require a valid bearer token for the endpoint.

    Sets g.identity to the authenticated Identity.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        identity = current_identity()
        if identity is None:
            message = getattr(g, "jwt_error", None) or "Authentication required"
            return api_error(E.UNAUTHORIZED, message)
        g.identity = identity
        return f(*args, **kwargs)

    return decorated


def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @require_auth
        @require_role("editor")
        def publish(blueprint_id): ...

    Role hierarchy: owner > editor > viewer
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            identity = getattr(g, "identity", None) or current_identity()
            if identity is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")

            allowed = ROLE_HIERARCHY.get(identity.role, set())
            if minimum_role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint",
                    identity.role, minimum_role,
                )
                return jsonify({
                    "error": f"Insufficient permissions. Required role: {minimum_role}",
                    "code": E.FORBIDDEN,
                }), 403
            return f(*args, **kwargs)

        return decorated
    return decorator
