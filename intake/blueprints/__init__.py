"""
HTTP blueprints. Thin JSON layer over the service modules: parse the request,
call one service function, serialise the result. No business rules here.

Shared pieces:
    register_error_handlers(bp)  core exceptions → JSON error envelope
    json_body()                  request JSON object, BadRequest (400) otherwise
"""

from __future__ import annotations

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from intake.core.exceptions import ConflictError, NotFoundError, ValidationError
from intake.utils.errors import E, api_error

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    """Malformed request body or parameters (HTTP 400)."""


def json_body() -> dict:
    """Return the request's JSON object; raise BadRequest when it is not one."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise BadRequest("Request body must be valid JSON")
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def register_error_handlers(bp) -> None:
    """Map core exceptions to HTTP responses for one blueprint."""

    @bp.errorhandler(BadRequest)
    def _handle_bad_request(error: BadRequest):
        return api_error(E.VALIDATION_INVALID, str(error))

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        logger.info("Not found: %s", error)
        return api_error(E.NOT_FOUND, error.public_message)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details or None)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_STATE, str(error))

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return {"error": error.description or error.name}, error.code
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
