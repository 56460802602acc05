"""
Per-request id and duration.

Every response carries ``X-Request-ID`` (echoed from the caller, or a fresh
12-char hex id) and ``X-Request-Duration-Ms``. One access line is logged per
API request; company and member ids are added by ``RequestContextFilter``.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
DURATION_HEADER = "X-Request-Duration-Ms"

_QUIET_PATHS = frozenset({"/api/v1/health"})


def _access_level(status: int, duration_ms: float, slow_ms: int) -> int:
    if status >= 500:
        return logging.ERROR
    if duration_ms > slow_ms:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    """Stamp a request id on ``g`` and log one access line per API call."""
    slow_ms = app.config.get("SLOW_REQUEST_MS", 1000)

    @app.before_request
    def _begin():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _finish(response):
        started = getattr(g, "request_start", None)
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = g.request_id
        response.headers[DURATION_HEADER] = f"{elapsed:.1f}"

        if request.path in _QUIET_PATHS or not request.path.startswith("/api/"):
            return response

        logger.log(
            _access_level(response.status_code, elapsed, slow_ms),
            "%s %s -> %d (%.0fms)",
            request.method, request.full_path.rstrip("?"), response.status_code, elapsed,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed,
                "remote_addr": request.remote_addr,
            },
        )
        return response
