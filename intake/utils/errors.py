"""Standard JSON error envelope.

Every error leaves the API as ``{"error": <message>, "code": "ERR_..."}``
(plus ``details`` for field-level validation output)::

    from intake.utils.errors import E, api_error

    return api_error(E.NOT_FOUND, "Blueprint not found")
    return api_error(E.VALIDATION_CONSTRAINT, "Blueprint must have at least one section")
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes."""

    # 400: body is not a JSON object, required parameter missing
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    # 422: well-formed request that breaks a business rule
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"
    # 404: missing, or owned by another company
    NOT_FOUND = "ERR_NOT_FOUND"
    # 409: unique key or state clash
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    # 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    # 500
    INTERNAL = "ERR_INTERNAL"


STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build a ``(response, status)`` pair for a Flask view or error handler.

    ``status`` defaults to ``STATUS_BY_CODE[code]`` (400 for unknown codes).
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_BY_CODE.get(code, 400)
