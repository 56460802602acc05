"""
Structured logging configuration.

- Development / testing: readable coloured lines
- Production: one JSON object per line
- LOG_LEVEL env variable overrides the default level

Every record emitted while a request is active is stamped with the request
id and the caller's company / member ids (``RequestContextFilter``), so a
service log line such as ``Blueprint published id=12`` can be traced back to
the request and tenant that caused it.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

_CONTEXT_KEYS = ("request_id", "company_id", "member_id")
_REQUEST_KEYS = ("method", "path", "status", "duration_ms", "remote_addr")


class RequestContextFilter(logging.Filter):
    """Copy request id / company / member from ``flask.g`` onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        values = {
            "request_id": getattr(g, "request_id", None),
            "company_id": getattr(g, "jwt_company_id", None),
            "member_id": getattr(g, "jwt_user_id", None),
        }
        for key, value in values.items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON document per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for key in _CONTEXT_KEYS + _REQUEST_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message [12ms] (rid c=7)`` with level colours."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        line = (
            f"{color}{datetime.now():%H:%M:%S} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        rid = getattr(record, "request_id", None)
        if rid:
            company = getattr(record, "company_id", None)
            line += f" ({rid} c={company})" if company is not None else f" ({rid})"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler for ``app``.

    Production (neither DEBUG nor TESTING) logs JSON at INFO; everything else
    logs readable lines at DEBUG. Handlers are replaced, not appended, so
    building several apps in one process (the test suite) does not duplicate
    output.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("werkzeug", "sqlalchemy.engine", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info(
            "Logging configured: level=%s format=%s",
            level_name, "JSON" if production else "readable",
        )
