"""
Health endpoint, request middleware and structured logging.
"""

import json
import logging

import pytest

from intake.middleware.logging_config import JSONFormatter, RequestContextFilter
from intake.middleware.timing import _access_level


def test_health_ok(client):
    res = client.get("/api/v1/health")
    body = res.get_json()
    assert res.status_code == 200
    assert body["status"] == "ok"
    assert body["app"] == "intake"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["cache"]["backend"] == "memory"


def test_request_id_echoed(client):
    res = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert float(res.headers["X-Request-Duration-Ms"]) >= 0


def test_request_id_generated(client):
    res = client.get("/api/v1/health")
    assert len(res.headers["X-Request-ID"]) == 12


@pytest.mark.parametrize("status,duration,expected", [
    (200, 5.0, logging.DEBUG),
    (404, 5.0, logging.DEBUG),
    (200, 1500.0, logging.WARNING),
    (503, 5.0, logging.ERROR),
    (500, 1500.0, logging.ERROR),
])
def test_access_log_level(status, duration, expected):
    assert _access_level(status, duration, 1000) == expected


def test_api_request_logged(client, editor, auth_headers, caplog):
    with caplog.at_level(logging.DEBUG, logger="intake.middleware.timing"):
        client.get("/api/v1/blueprints", headers=auth_headers(editor))

    records = [r for r in caplog.records if r.name == "intake.middleware.timing"]
    assert len(records) == 1
    assert records[0].status == 200
    assert records[0].getMessage().startswith("GET /api/v1/blueprints -> 200")


def test_health_not_access_logged(client, caplog):
    with caplog.at_level(logging.DEBUG, logger="intake.middleware.timing"):
        client.get("/api/v1/health")
    assert not [r for r in caplog.records if r.name == "intake.middleware.timing"]


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/nowhere")
    assert res.status_code == 404
    assert res.get_json() == {"error": "Not found", "path": "/api/v1/nowhere"}


def test_method_not_allowed_is_json(client, editor, auth_headers):
    res = client.patch("/api/v1/blueprints", headers=auth_headers(editor))
    assert res.status_code == 405
    assert res.get_json() == {"error": "Method not allowed"}


def test_json_formatter_includes_request_extras():
    record = logging.LogRecord(
        "intake.test", logging.INFO, __file__, 10, "Request: %s", ("GET",), None,
    )
    record.request_id = "rid1"
    record.company_id = 7
    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "Request: GET"
    assert entry["level"] == "INFO"
    assert entry["request_id"] == "rid1"
    assert entry["company_id"] == 7
    assert "member_id" not in entry


def test_request_context_filter_stamps_records(app, editor, auth_headers):
    record = logging.LogRecord("intake.test", logging.INFO, __file__, 1, "x", (), None)
    headers = {**auth_headers(editor), "X-Request-ID": "rid42"}
    with app.test_request_context("/api/v1/blueprints", headers=headers):
        app.preprocess_request()
        assert RequestContextFilter().filter(record) is True

    assert record.request_id == "rid42"
    assert record.company_id == editor.company_id
    assert record.member_id == editor.id
