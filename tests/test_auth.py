"""
Auth tests: JWT service, bearer middleware and role decorators.
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from intake.auth import ROLE_HIERARCHY, current_identity
from intake.services.jwt_service import (
    ALGORITHM,
    decode_access_token,
    generate_access_token,
)


def _token(app, **overrides):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "1",
        "company_id": 1,
        "role": "editor",
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=5),
    }
    payload.update(overrides)
    payload = {k: v for k, v in payload.items() if v is not None}
    return pyjwt.encode(payload, app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# JWT SERVICE
# ═══════════════════════════════════════════════════════════════

class TestJwtService:

    def test_round_trip_claims(self):
        payload = decode_access_token(generate_access_token(42, 7, "owner"))
        assert payload["sub"] == "42"
        assert payload["company_id"] == 7
        assert payload["role"] == "owner"
        assert payload["type"] == "access"
        assert payload["jti"]

    def test_expired(self, app):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_access_token(_token(app, iat=past, exp=past + timedelta(minutes=1)))

    def test_wrong_type(self, app):
        with pytest.raises(pyjwt.InvalidTokenError, match="Expected access token"):
            decode_access_token(_token(app, type="refresh"))

    def test_missing_company(self, app):
        with pytest.raises(pyjwt.InvalidTokenError, match="company_id"):
            decode_access_token(_token(app, company_id=None))

    def test_wrong_secret(self):
        token = pyjwt.encode(
            {"sub": "1", "company_id": 1, "type": "access",
             "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "another-secret-that-is-long-enough-32b",
            algorithm=ALGORITHM,
        )
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_access_token(token)


# ═══════════════════════════════════════════════════════════════
# MIDDLEWARE + DECORATORS
# ═══════════════════════════════════════════════════════════════

class TestBearerAuth:

    def test_no_header(self, client):
        res = client.get("/api/v1/sessions")
        assert res.status_code == 401
        assert res.get_json()["error"] == "Authentication required"

    def test_expired_token_message(self, app, client):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = _token(app, iat=past, exp=past + timedelta(minutes=1))
        res = client.get("/api/v1/sessions", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Token expired"

    def test_garbage_token(self, client):
        res = client.get("/api/v1/sessions", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_non_numeric_subject(self, app, client):
        token = _token(app, sub="abc")
        res = client.get("/api/v1/sessions", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_unknown_role_rejected(self, app, client):
        token = _token(app, role="admin")
        res = client.get("/api/v1/sessions", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_identity_from_valid_token(self, app, editor, auth_headers):
        with app.test_request_context("/api/v1/sessions", headers=auth_headers(editor)):
            app.preprocess_request()
            identity = current_identity()
        assert identity.id == editor.id
        assert identity.company_id == editor.company_id
        assert identity.role == "editor"

    def test_company_comes_from_token(self, client, company, other_company, make_blueprint,
                                      outsider, auth_headers):
        make_blueprint(company, "Acme only")
        body = client.get("/api/v1/blueprints", headers=auth_headers(outsider)).get_json()
        assert body["items"] == []

    def test_health_is_public(self, client):
        assert client.get("/api/v1/health").status_code == 200


class TestRoleHierarchy:

    @pytest.mark.parametrize("role,minimum,allowed", [
        ("owner", "editor", True),
        ("editor", "editor", True),
        ("viewer", "editor", False),
        ("viewer", "viewer", True),
        ("editor", "owner", False),
    ])
    def test_hierarchy(self, role, minimum, allowed):
        assert (minimum in ROLE_HIERARCHY[role]) is allowed
