"""
ASE Fidel
Flask Application Factory.

Usage:
    from ase_fidel import create_app
    app = create_app()           # defaults to "development"
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

from ase_fidel.config import config
from ase_fidel.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    TransitionError,
    ValidationError,
)
from ase_fidel.middleware.logging_config import configure_logging
from ase_fidel.middleware.rate_limiter import init_rate_limits
from ase_fidel.middleware.session_context import init_session_context
from ase_fidel.middleware.timing import init_request_timing
from ase_fidel.models import db
from ase_fidel.utils.errors import E, api_error

logger = logging.getLogger(__name__)

MSG_LOAD_FAILED = "Não foi possível carregar os dados."


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
    default_limits=[],                     # no global limit, applied per route/blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
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
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

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

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Session context (sets g.session_ctx from the bearer token) ──────
    init_session_context(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from ase_fidel.models import ase as _ase_models            # noqa: F401
    from ase_fidel.models import auth as _auth_models          # noqa: F401
    from ase_fidel.models import registry as _registry_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ─────────────────────────
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in \
            app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(os.path.dirname(app.config["SQLALCHEMY_DATABASE_URI"][len("sqlite:///"):]),
                    exist_ok=True)
    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from ase_fidel.blueprints.ase_bp import ase_bp
    from ase_fidel.blueprints.auth_bp import auth_bp
    from ase_fidel.blueprints.dashboard_bp import dashboard_bp
    from ase_fidel.blueprints.efetivo_bp import efetivo_bp
    from ase_fidel.blueprints.health_bp import health_bp
    from ase_fidel.blueprints.registry_bp import registry_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(ase_bp)
    app.register_blueprint(registry_bp)
    app.register_blueprint(efetivo_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(health_bp)

    _register_cli(app)
    _register_error_handlers(app)

    # ── Health check (detailed version at /health/live) ─────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "ASE Fidel"}

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


# ═════════════════════════════════════════════════════════════════════════════
# CLI
# ═════════════════════════════════════════════════════════════════════════════

def _register_cli(app):
    @app.cli.command("seed-reference")
    def seed_reference_cmd():
        """Seed default sectors, disciplines and subdisciplines."""
        from ase_fidel.services.seed_service import seed_reference_data
        created = seed_reference_data()
        click.echo(f"Seeded: {created}")

    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    @click.option("--role", default="VISUALIZADOR", show_default=True, help="Profile role.")
    @click.option("--name", "full_name", default="", help="Full name.")
    def create_user_cmd(email, password, role, full_name):
        """Create a confirmed account with a profile."""
        from ase_fidel.services.session_service import create_user
        try:
            user = create_user(email, password, role=role.upper(), full_name=full_name)
        except (ValidationError, ConflictError) as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Created user #{user.id} {user.email} ({role.upper()})")


# ═════════════════════════════════════════════════════════════════════════════
# Error handlers
# ═════════════════════════════════════════════════════════════════════════════

def _register_error_handlers(app):
    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e), details={"field": e.field, "value": e.value})

    @app.errorhandler(TransitionError)
    def handle_transition(e):
        return api_error(
            E.CONFLICT_STATE, str(e),
            details={"action": e.action, "current_status": e.current_status},
        )

    @app.errorhandler(AuthenticationError)
    def handle_authentication(e):
        code = E.AUTH_REQUIRED if e.status_code == 401 else E.FORBIDDEN
        return api_error(code, e.message, status=e.status_code)

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(e):
        return api_error(
            E.FORBIDDEN, "Você não tem permissão para esta ação.",
            details={"feature": e.feature, "role": e.role},
        )

    @app.errorhandler(SQLAlchemyError)
    def handle_database(e):
        db.session.rollback()
        logger.error("Database error on %s %s", request.method, request.path, exc_info=e)
        if request.method == "GET":
            return api_error(E.DATABASE, MSG_LOAD_FAILED)
        return api_error(E.DATABASE, str(getattr(e, "orig", None) or e))

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION_INVALID, "Arquivo muito grande.", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Muitas tentativas. Aguarde e tente novamente.", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
