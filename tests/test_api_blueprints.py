"""
Blueprint API integration tests (/api/v1/blueprints, /sections, /fields).

Covers the HTTP contract: status codes, error envelopes, role gates and
company isolation. Business rules are covered by the service tests.
"""

import pytest

from intake.models import db
from intake.models.blueprint import Blueprint


@pytest.fixture()
def hdr(editor, auth_headers):
    return auth_headers(editor)


def _create_published_tree(client, hdr, name="Kickoff"):
    bp = client.post("/api/v1/blueprints", json={"name": name}, headers=hdr).get_json()
    sec = client.post(
        f"/api/v1/blueprints/{bp['id']}/sections", json={"title": "Overview"}, headers=hdr,
    ).get_json()
    client.post(
        f"/api/v1/sections/{sec['id']}/fields",
        json={"label": "Project name", "required": True},
        headers=hdr,
    )
    res = client.post(f"/api/v1/blueprints/{bp['id']}/publish", headers=hdr)
    assert res.status_code == 200
    return bp["id"], sec["id"]


# ═══════════════════════════════════════════════════════════════
# BLUEPRINTS
# ═══════════════════════════════════════════════════════════════

class TestBlueprintEndpoints:

    def test_create_and_list(self, client, hdr):
        res = client.post(
            "/api/v1/blueprints", json={"name": "Discovery", "description": "d"}, headers=hdr,
        )
        assert res.status_code == 201
        assert res.get_json()["status"] == "draft"

        res = client.get("/api/v1/blueprints", headers=hdr)
        body = res.get_json()
        assert res.status_code == 200
        assert body["total"] == 1
        assert body["items"][0]["section_count"] == 0

    def test_list_status_filter(self, client, hdr):
        _create_published_tree(client, hdr)
        client.post("/api/v1/blueprints", json={"name": "Draft"}, headers=hdr)

        body = client.get("/api/v1/blueprints?status=draft", headers=hdr).get_json()
        assert [i["name"] for i in body["items"]] == ["Draft"]

    def test_create_missing_name_is_422(self, client, hdr):
        res = client.post("/api/v1/blueprints", json={}, headers=hdr)
        assert res.status_code == 422
        assert res.get_json()["error"] == "Blueprint name is required"
        assert res.get_json()["code"] == "ERR_VALIDATION_CONSTRAINT"

    def test_duplicate_name_is_409(self, client, hdr):
        client.post("/api/v1/blueprints", json={"name": "Same"}, headers=hdr)
        res = client.post("/api/v1/blueprints", json={"name": "Same"}, headers=hdr)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_non_object_body_is_400(self, client, hdr):
        res = client.post("/api/v1/blueprints", json=["x"], headers=hdr)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_non_json_content_type_is_415(self, client, hdr):
        res = client.post(
            "/api/v1/blueprints", data="name=x", headers=hdr, content_type="text/plain",
        )
        assert res.status_code == 415

    def test_get_update_delete(self, client, hdr):
        bp = client.post("/api/v1/blueprints", json={"name": "A"}, headers=hdr).get_json()

        res = client.get(f"/api/v1/blueprints/{bp['id']}", headers=hdr)
        assert res.status_code == 200
        assert res.get_json()["sections"] == []

        res = client.put(f"/api/v1/blueprints/{bp['id']}", json={"name": "B"}, headers=hdr)
        assert res.get_json()["name"] == "B"

        res = client.delete(f"/api/v1/blueprints/{bp['id']}", headers=hdr)
        assert res.status_code == 204
        assert client.get(f"/api/v1/blueprints/{bp['id']}", headers=hdr).status_code == 404

    def test_unknown_blueprint_is_404_generic(self, client, hdr):
        res = client.get("/api/v1/blueprints/999", headers=hdr)
        assert res.status_code == 404
        assert res.get_json()["error"] == "Blueprint not found"


class TestPublishEndpoints:

    def test_publish_then_bump(self, client, hdr):
        bp_id, _ = _create_published_tree(client, hdr)

        res = client.post(f"/api/v1/blueprints/{bp_id}/publish", headers=hdr)
        body = res.get_json()
        assert res.status_code == 200
        assert body["version"] == 2
        assert body["previous_id"] == bp_id

        old = client.get(f"/api/v1/blueprints/{bp_id}", headers=hdr).get_json()
        assert old["status"] == "archived"

    def test_publish_empty_is_422(self, client, hdr):
        bp = client.post("/api/v1/blueprints", json={"name": "Empty"}, headers=hdr).get_json()
        res = client.post(f"/api/v1/blueprints/{bp['id']}/publish", headers=hdr)
        assert res.status_code == 422
        assert res.get_json()["error"] == "Blueprint must have at least one section"

    def test_publish_archived_is_422(self, client, hdr):
        bp_id, _ = _create_published_tree(client, hdr)
        client.post(f"/api/v1/blueprints/{bp_id}/publish", headers=hdr)
        res = client.post(f"/api/v1/blueprints/{bp_id}/publish", headers=hdr)
        assert res.status_code == 422
        assert "Archived" in res.get_json()["error"]

    def test_duplicate(self, client, hdr):
        bp_id, _ = _create_published_tree(client, hdr)
        res = client.post(
            f"/api/v1/blueprints/{bp_id}/duplicate", json={"name": "Copy"}, headers=hdr,
        )
        assert res.status_code == 201
        copy = res.get_json()
        assert (copy["status"], copy["version"]) == ("draft", 1)

        tree = client.get(f"/api/v1/blueprints/{copy['id']}", headers=hdr).get_json()
        assert tree["sections"][0]["fields"][0]["key"] == "project_name"

    def test_duplicate_without_name_is_422(self, client, hdr):
        bp_id, _ = _create_published_tree(client, hdr)
        res = client.post(f"/api/v1/blueprints/{bp_id}/duplicate", json={}, headers=hdr)
        assert res.status_code == 422


# ═══════════════════════════════════════════════════════════════
# SECTIONS & FIELDS
# ═══════════════════════════════════════════════════════════════

class TestStructureEndpoints:

    def test_section_and_field_lifecycle(self, client, hdr):
        bp = client.post("/api/v1/blueprints", json={"name": "A"}, headers=hdr).get_json()
        s1 = client.post(
            f"/api/v1/blueprints/{bp['id']}/sections", json={"title": "One"}, headers=hdr,
        ).get_json()
        s2 = client.post(
            f"/api/v1/blueprints/{bp['id']}/sections", json={"title": "Two"}, headers=hdr,
        ).get_json()
        res = client.post(
            f"/api/v1/sections/{s1['id']}/fields",
            json={"label": "Name", "type": "LongText", "span": 2},
            headers=hdr,
        )
        assert res.status_code == 201
        field = res.get_json()

        res = client.put(f"/api/v1/fields/{field['id']}", json={"label": "Full name"}, headers=hdr)
        assert res.get_json()["label"] == "Full name"

        res = client.put(
            f"/api/v1/fields/{field['id']}/move", json={"section_id": s2["id"]}, headers=hdr,
        )
        assert res.get_json()["section_id"] == s2["id"]

        res = client.put("/api/v1/sections/reorder", json={"sections": [
            {"id": s1["id"], "order_index": 1},
            {"id": s2["id"], "order_index": 0},
        ]}, headers=hdr)
        assert res.get_json() == {"count": 2}

        tree = client.get(f"/api/v1/blueprints/{bp['id']}", headers=hdr).get_json()
        assert [s["title"] for s in tree["sections"]] == ["Two", "One"]
        assert tree["sections"][0]["fields"][0]["label"] == "Full name"

        assert client.delete(f"/api/v1/fields/{field['id']}", headers=hdr).status_code == 204
        assert client.delete(f"/api/v1/sections/{s1['id']}", headers=hdr).status_code == 204

    def test_invalid_field_type_is_422(self, client, hdr):
        bp = client.post("/api/v1/blueprints", json={"name": "A"}, headers=hdr).get_json()
        sec = client.post(
            f"/api/v1/blueprints/{bp['id']}/sections", json={"title": "S"}, headers=hdr,
        ).get_json()
        res = client.post(
            f"/api/v1/sections/{sec['id']}/fields", json={"label": "X", "type": "Date"}, headers=hdr,
        )
        assert res.status_code == 422

    def test_move_requires_section_id(self, client, hdr):
        res = client.put("/api/v1/fields/1/move", json={}, headers=hdr)
        assert res.status_code == 400
        assert res.get_json()["error"] == "section_id is required"

    def test_reorder_fields(self, client, hdr):
        bp = client.post("/api/v1/blueprints", json={"name": "A"}, headers=hdr).get_json()
        sec = client.post(
            f"/api/v1/blueprints/{bp['id']}/sections", json={"title": "S"}, headers=hdr,
        ).get_json()
        a = client.post(f"/api/v1/sections/{sec['id']}/fields", json={"label": "A"}, headers=hdr).get_json()
        b = client.post(f"/api/v1/sections/{sec['id']}/fields", json={"label": "B"}, headers=hdr).get_json()

        res = client.put("/api/v1/fields/reorder", json={"fields": [
            {"id": a["id"], "order_index": 1},
            {"id": b["id"], "order_index": 0},
        ]}, headers=hdr)
        assert res.get_json() == {"count": 2}

        tree = client.get(f"/api/v1/blueprints/{bp['id']}", headers=hdr).get_json()
        assert [f["label"] for f in tree["sections"][0]["fields"]] == ["B", "A"]

    def test_structure_locked_by_session_is_409(self, client, hdr):
        bp_id, sec_id = _create_published_tree(client, hdr)
        client.post("/api/v1/sessions", json={"name": "Run", "blueprint_id": bp_id}, headers=hdr)

        res = client.post(f"/api/v1/sections/{sec_id}/fields", json={"label": "Late"}, headers=hdr)
        assert res.status_code == 409


# ═══════════════════════════════════════════════════════════════
# ROLES & ISOLATION
# ═══════════════════════════════════════════════════════════════

class TestAccessControl:

    def test_viewer_can_read_not_write(self, client, viewer, auth_headers):
        h = auth_headers(viewer)
        assert client.get("/api/v1/blueprints", headers=h).status_code == 200

        res = client.post("/api/v1/blueprints", json={"name": "X"}, headers=h)
        assert res.status_code == 403
        assert res.get_json()["error"] == "Insufficient permissions. Required role: editor"

    def test_owner_inherits_editor(self, client, owner, auth_headers):
        res = client.post("/api/v1/blueprints", json={"name": "X"}, headers=auth_headers(owner))
        assert res.status_code == 201

    def test_other_company_sees_404(self, client, hdr, outsider, auth_headers):
        bp_id, sec_id = _create_published_tree(client, hdr)
        h = auth_headers(outsider)

        assert client.get(f"/api/v1/blueprints/{bp_id}", headers=h).status_code == 404
        assert client.post(f"/api/v1/blueprints/{bp_id}/publish", headers=h).status_code == 404
        assert client.delete(f"/api/v1/sections/{sec_id}", headers=h).status_code == 404
        assert client.get("/api/v1/blueprints", headers=h).get_json()["total"] == 0
        assert db.session.get(Blueprint, bp_id).status == "published"

    def test_missing_token_is_401(self, client):
        res = client.get("/api/v1/blueprints")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"
