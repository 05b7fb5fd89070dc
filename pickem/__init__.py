import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


# Storage backend comes from RATELIMIT_STORAGE_URI in the app config
limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Identity comes from the auth provider as a bearer token
    from pickem.auth import register_auth_loaders

    register_auth_loaders(login_manager)

    # Import and register blueprints
    from pickem.routes.main import bp as main_bp

    app.register_blueprint(main_bp)

    from pickem.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from pickem.utils.logging_config import setup_logging

    setup_logging(app)

    # Show configuration warnings
    show_config_warnings(app, config_name)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from pickem.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    return app


def show_config_warnings(app, config_name):
    """Log configuration warnings and status"""
    logger.info(f"Gameweek Pick'em starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not os.environ.get("SECRET_KEY") and not app.config.get("TESTING"):
        logger.warning(
            "Using auto-generated SECRET_KEY (sessions will reset on restart)"
        )

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        if "memory" in db_url:
            logger.info("Using SQLite database (in-memory)")
        else:
            logger.info("Using SQLite database (app.db file)")
    elif "postgresql" in db_url:
        logger.info("Using PostgreSQL database")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )


def register_error_handlers(app):
    """Register global error handlers"""
    from pickem.errors import (
        InternalError,
        InvalidTeamForFixture,
        LeagueError,
        PickNotFound,
        PickRejected,
    )

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    @app.errorhandler(PickRejected)
    def handle_pick_rejected(error):
        status = 409
        if isinstance(error, InvalidTeamForFixture):
            status = 422
        elif isinstance(error, PickNotFound):
            status = 404
        return jsonify(error.to_dict()), status

    @app.errorhandler(LeagueError)
    def handle_league_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(InternalError)
    def handle_internal_error(error):
        db.session.rollback()
        app.logger.error(f"Internal error: {error}")
        return (
            jsonify(
                {
                    "success": False,
                    "error": "internal_error",
                    "message": "Something went wrong on our side. Please try again.",
                }
            ),
            500,
        )

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized_error(error):
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({"error": "Access forbidden"}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def internal_server_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


from pickem import models  # noqa: F401, E402 - imported for model registration
