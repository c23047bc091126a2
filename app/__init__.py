import logging

from flask import Flask
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from werkzeug.exceptions import HTTPException

from app.extensions import db, cors, migrate
from app.routes import register_routes
from app.services import wiring
from app.utils.errors import DiningError, ErrorCode
from app.utils.http import error, error_from

# Register every model with the metadata before create_all / migrations run
from app.models import (  # noqa: F401
    confirmation_log,
    department,
    dining_order,
    dish,
    menu,
    menu_dish,
    qr_code,
    scan_registration,
    user,
)


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("app").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


def _register_error_handlers(app):
    @app.errorhandler(DiningError)
    def handle_dining_error(exc: DiningError):
        return error_from(exc)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return error_from(DiningError(ErrorCode.VALIDATION_ERROR, fields=exc.messages))

    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def handle_store_unavailable(exc):
        db.session.rollback()
        app.logger.warning("Store unavailable: %s", exc.__class__.__name__)
        return error_from(DiningError(ErrorCode.SERVICE_UNAVAILABLE, retryable=True))

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = "NOT_FOUND" if exc.code == 404 else exc.name.upper().replace(" ", "_")
        return error(code, exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return error_from(DiningError(ErrorCode.INTERNAL_ERROR))


def create_app(config_object="config.Config"):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Initialize database
    db.init_app(app)

    # Initialize Flask-Migrate
    migrate.init_app(app, db)

    # CORS Configuration
    cors.init_app(app,
                  origins=app.config.get("CORS_ORIGINS") or ["http://localhost:5173"],
                  supports_credentials=True,
                  allow_headers=["Content-Type", "Authorization"],
                  methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                  expose_headers=["Content-Type", "Authorization"])

    # Time window policy, caches, token signer and the order services
    wiring.init_app(app)

    register_routes(app)
    _register_error_handlers(app)

    return app


__all__ = ["create_app"]
