# backend/stocksimple/__init__.py
from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


def _engine_options(app: Flask) -> dict:
    options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        # Concurrent writers wait for the database lock instead of failing
        connect_args = dict(options.get("connect_args") or {})
        connect_args.setdefault("timeout", app.config.get("SQLITE_BUSY_TIMEOUT", 30))
        options["connect_args"] = connect_args
    return options


def create_app(config_overrides: dict | None = None) -> Flask:
    """
    Application factory.

    config_overrides are applied before extensions bind, so tests can point
    the app at their own database.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.movements import movements_bp
    from .routes.dashboard import dashboard_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(movements_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(reports_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc):
        db.session.rollback()
        app.logger.exception("Storage failure on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"error": exc.description or exc.name}), exc.code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
