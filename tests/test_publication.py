"""
Publication state machine tests.

    draft      -> published            (in place)
    published  -> archived + new row   (version + 1)
    archived   -> rejected

Also covers duplicate (new draft lineage) and the atomicity of both.
"""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from intake.core.exceptions import ConflictError, NotFoundError, ValidationError
from intake.models import db
from intake.models.blueprint import Blueprint, Field, Section
from intake.models.session import Session
from intake.services import blueprint_service, publication, session_service

SECTIONS = [
    ("Overview", [
        {"key": "project_name", "required": True},
        {"key": "goal", "type": "LongText", "span": 2},
    ]),
    ("Schedule", [
        {"key": "start_date", "required": True},
    ]),
]


def _count(model):
    return db.session.execute(select(func.count(model.id))).scalar_one()


# ═══════════════════════════════════════════════════════════════
# PUBLISH
# ═══════════════════════════════════════════════════════════════

class TestPublishDraft:

    def test_draft_published_in_place(self, company, make_blueprint):
        bp = make_blueprint(company, sections=SECTIONS)
        result = publication.publish_blueprint(company.id, bp.id)

        assert result["id"] == bp.id
        assert result["status"] == "published"
        assert result["version"] == 1
        assert result["previous_id"] is None
        assert _count(Blueprint) == 1

    def test_publish_refreshes_updated_at(self, company, make_blueprint):
        bp = make_blueprint(company, sections=SECTIONS)
        stale = datetime(2020, 1, 1)
        bp.updated_at = stale
        db.session.commit()

        publication.publish_blueprint(company.id, bp.id)

        assert db.session.get(Blueprint, bp.id).updated_at > stale

    def test_draft_without_sections_rejected(self, company, make_blueprint):
        bp = make_blueprint(company)
        with pytest.raises(ValidationError, match="at least one section"):
            publication.publish_blueprint(company.id, bp.id)
        assert db.session.get(Blueprint, bp.id).status == "draft"

    def test_draft_without_fields_rejected(self, company, make_blueprint):
        bp = make_blueprint(company, sections=[("Empty", [])])
        with pytest.raises(ValidationError, match="at least one field"):
            publication.publish_blueprint(company.id, bp.id)
        assert db.session.get(Blueprint, bp.id).status == "draft"


class TestPublishPublished:

    def test_version_bump_archives_source(self, company, make_blueprint):
        bp = make_blueprint(company, status="published", sections=SECTIONS)
        result = publication.publish_blueprint(company.id, bp.id)

        assert result["id"] != bp.id
        assert result["version"] == 2
        assert result["status"] == "published"
        assert result["name"] == bp.name
        assert result["previous_id"] == bp.id
        assert db.session.get(Blueprint, bp.id).status == "archived"

        assert _count(Section) == 4
        assert _count(Field) == 6

    def test_versions_strictly_increase(self, company, make_blueprint):
        bp = make_blueprint(company, status="published", sections=SECTIONS)
        current = bp.id
        versions = [1]
        for _ in range(3):
            result = publication.publish_blueprint(company.id, current)
            current = result["id"]
            versions.append(result["version"])

        assert versions == [1, 2, 3, 4]
        statuses = db.session.execute(
            select(Blueprint.version, Blueprint.status).order_by(Blueprint.version)
        ).all()
        assert [s for _, s in statuses] == ["archived", "archived", "archived", "published"]

    def test_sessions_stay_bound_to_archived_version(self, company, make_blueprint):
        bp = make_blueprint(company, status="published", sections=SECTIONS)
        session = session_service.create_session(company.id, {"name": "Run", "blueprint_id": bp.id})
        result = publication.publish_blueprint(company.id, bp.id)

        fetched = session_service.get_session(company.id, session["id"])
        assert fetched["blueprint_id"] == bp.id
        assert fetched["blueprint_version"] == 1
        assert result["version"] == 2

    def test_next_version_taken_rolls_back(self, company, make_blueprint):
        bp = make_blueprint(company, status="published", sections=SECTIONS)
        make_blueprint(company, bp.name, status="draft", version=2)

        with pytest.raises(ConflictError):
            publication.publish_blueprint(company.id, bp.id)

        assert db.session.get(Blueprint, bp.id).status == "published"
        assert _count(Blueprint) == 2
        assert _count(Section) == 2


class TestPublishRejected:

    def test_archived_rejected(self, company, make_blueprint):
        bp = make_blueprint(company, status="archived", sections=SECTIONS)
        with pytest.raises(ValidationError, match="Archived blueprints cannot be published"):
            publication.publish_blueprint(company.id, bp.id)
        assert _count(Blueprint) == 1

    def test_other_company_not_found(self, company, other_company, make_blueprint):
        bp = make_blueprint(company, sections=SECTIONS)
        with pytest.raises(NotFoundError):
            publication.publish_blueprint(other_company.id, bp.id)
        assert db.session.get(Blueprint, bp.id).status == "draft"


# ═══════════════════════════════════════════════════════════════
# DUPLICATE
# ═══════════════════════════════════════════════════════════════

class TestDuplicate:

    @pytest.mark.parametrize("status", ["draft", "published", "archived"])
    def test_duplicate_any_status_gives_draft_v1(self, company, make_blueprint, status):
        bp = make_blueprint(
            company, status=status, version=3, description="Desc", sections=SECTIONS,
        )
        copy = publication.duplicate_blueprint(company.id, bp.id, "Copy")

        assert copy["status"] == "draft"
        assert copy["version"] == 1
        assert copy["name"] == "Copy"
        assert copy["description"] == "Desc"
        assert db.session.get(Blueprint, bp.id).status == status

        tree = blueprint_service.get_blueprint(company.id, copy["id"])
        assert [s["title"] for s in tree["sections"]] == ["Overview", "Schedule"]
        assert [f["key"] for f in tree["sections"][0]["fields"]] == ["project_name", "goal"]

    def test_duplicate_name_trimmed(self, company, make_blueprint):
        bp = make_blueprint(company, sections=SECTIONS)
        copy = publication.duplicate_blueprint(company.id, bp.id, "  Trimmed  ")
        assert copy["name"] == "Trimmed"

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_duplicate_requires_name(self, company, make_blueprint, name):
        bp = make_blueprint(company, sections=SECTIONS)
        with pytest.raises(ValidationError, match="Blueprint name is required"):
            publication.duplicate_blueprint(company.id, bp.id, name)
        assert _count(Blueprint) == 1

    def test_duplicate_existing_name_conflicts(self, company, make_blueprint):
        bp = make_blueprint(company, sections=SECTIONS)
        with pytest.raises(ConflictError):
            publication.duplicate_blueprint(company.id, bp.id, bp.name)
        assert _count(Blueprint) == 1

    def test_duplicate_other_company_not_found(self, company, other_company, make_blueprint):
        bp = make_blueprint(company, sections=SECTIONS)
        with pytest.raises(NotFoundError):
            publication.duplicate_blueprint(other_company.id, bp.id, "Stolen")
        assert _count(Blueprint) == 1


# ═══════════════════════════════════════════════════════════════
# END-TO-END
# ═══════════════════════════════════════════════════════════════

class TestPublishSessionLifecycle:

    def test_draft_publish_session_complete_bump(self, company, make_blueprint):
        bp1 = make_blueprint(company, "BP", sections=[
            ("Main", [{"key": "name", "required": True}, {"key": "notes"}]),
        ])
        published = publication.publish_blueprint(company.id, bp1.id)
        assert (published["status"], published["version"]) == ("published", 1)

        s1 = session_service.create_session(company.id, {"name": "S1", "blueprint_id": bp1.id})
        name_field = next(f.id for f in bp1.sections[0].fields if f.key == "name")
        result = session_service.set_field_value(company.id, s1["id"], name_field, "Acme")
        assert (result["completion_percent"], result["status"]) == (100, "completed")

        bp2 = publication.publish_blueprint(company.id, bp1.id)
        assert (bp2["status"], bp2["version"]) == ("published", 2)
        assert db.session.get(Blueprint, bp1.id).status == "archived"

        s1_row = db.session.get(Session, s1["id"])
        assert s1_row.blueprint_id == bp1.id
        assert s1_row.status == "completed"
