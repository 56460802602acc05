"""
Shared pytest fixtures for the Intake Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - company / other_company: tenancy boundary pair
    - owner / editor / viewer / outsider: members with their roles
    - auth_headers: bearer headers for a member
    - make_blueprint: ORM factory for a blueprint tree in any status
"""

import pytest

from intake import create_app
from intake.models import db as _db
from intake.models.blueprint import Blueprint, Field, Section
from intake.models.company import Company, Member
from intake.services import cache_service
from intake.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    cache_service.reset_backend()
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # ids are reused after every recreate; stale cached lists must go too
        cache_service.clear_all()
        yield
        cache_service.clear_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Tenancy fixtures ─────────────────────────────────────────────────────


def _member(company, email, role):
    m = Member(company_id=company.id, email=email, name=email.split("@")[0], role=role)
    _db.session.add(m)
    _db.session.commit()
    return m


@pytest.fixture()
def company():
    c = Company(name="Acme Corp", slug="acme")
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def other_company():
    c = Company(name="Globex", slug="globex")
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def owner(company):
    return _member(company, "owner@acme.test", "owner")


@pytest.fixture()
def editor(company):
    return _member(company, "editor@acme.test", "editor")


@pytest.fixture()
def viewer(company):
    return _member(company, "viewer@acme.test", "viewer")


@pytest.fixture()
def outsider(other_company):
    """Editor of the other company."""
    return _member(other_company, "editor@globex.test", "editor")


@pytest.fixture()
def auth_headers():
    """Return a function building bearer headers for a member."""

    def _headers(member):
        token = generate_access_token(member.id, member.company_id, member.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Schema factory ───────────────────────────────────────────────────────


@pytest.fixture()
def make_blueprint():
    """Return a factory building a blueprint tree directly through the ORM.

    ``sections`` is a list of ``(title, [field_spec, ...])`` where a field
    spec is a dict with at least ``key``; missing attributes default to an
    optional ShortText of span 1. Bypasses service guards so any starting
    status can be set up.
    """

    def _make(company, name="Onboarding", *, status="draft", version=1,
              description=None, sections=()):
        bp = Blueprint(
            company_id=company.id,
            name=name,
            description=description,
            status=status,
            version=version,
        )
        _db.session.add(bp)
        _db.session.flush()
        for s_index, (title, fields) in enumerate(sections):
            section = Section(
                blueprint_id=bp.id,
                order_index=s_index,
                title=title,
                description=f"{title} description",
            )
            _db.session.add(section)
            _db.session.flush()
            for f_index, spec in enumerate(fields):
                _db.session.add(Field(
                    section_id=section.id,
                    key=spec["key"],
                    label=spec.get("label", spec["key"].replace("_", " ").title()),
                    type=spec.get("type", "ShortText"),
                    help_text=spec.get("help_text"),
                    placeholder=spec.get("placeholder"),
                    required=spec.get("required", False),
                    span=spec.get("span", 1),
                    order_index=f_index,
                ))
        _db.session.commit()
        return bp

    return _make
