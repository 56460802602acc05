"""
Intake Platform
Flask Application Factory.

Usage:
    from intake import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from intake.config import config
from intake.models import db
from intake.middleware.logging_config import configure_logging
from intake.middleware.timing import init_request_timing
from intake.middleware.jwt_auth import init_jwt_middleware
from intake.middleware.rate_limiter import init_rate_limits

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # no global limit, applied per blueprint / route
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars in __init__
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing + JWT identity ────────────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.get_data(cache=True) and "json" not in ct:
                return {"error": "Content-Type must be application/json"}, 415
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from intake.models import company as _company_models      # noqa: F401
    from intake.models import blueprint as _blueprint_models  # noqa: F401
    from intake.models import session as _session_models      # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        os.makedirs(app.instance_path, exist_ok=True)
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from intake.blueprints.blueprint_bp import blueprint_bp
    from intake.blueprints.health_bp import health_bp
    from intake.blueprints.session_bp import session_bp
    from intake.blueprints.suggestion_bp import suggestion_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(blueprint_bp)
    app.register_blueprint(session_bp)
    app.register_blueprint(suggestion_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo-blueprint")
    @click.option("--company-slug", default="demo", show_default=True)
    def seed_demo_blueprint_cmd(company_slug):
        """Seed the "Beta Test Plan" demo blueprint."""
        from intake.services.seed_service import seed_demo_blueprint
        result = seed_demo_blueprint(company_slug)
        if result["created"]:
            click.echo(f"Seeded blueprint id={result['blueprint_id']} company_id={result['company_id']}")
        else:
            click.echo(f"Demo blueprint already present (id={result['blueprint_id']})")

    @app.cli.command("issue-token")
    @click.argument("email")
    @click.option("--company-slug", default="demo", show_default=True)
    def issue_token_cmd(email, company_slug):
        """Print an access token for a member (development helper)."""
        from intake.models.company import Company, Member
        from intake.services.jwt_service import generate_access_token

        member = db.session.execute(
            db.select(Member).join(Company).where(
                Company.slug == company_slug, Member.email == email
            )
        ).scalar_one_or_none()
        if member is None:
            raise click.ClickException(f"No member {email} in company '{company_slug}'")
        click.echo(generate_access_token(member.id, member.company_id, member.role))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def payload_too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
