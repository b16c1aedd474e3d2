# backend/supplytrack/__init__.py
from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ServiceError
from .extensions import db, migrate, pinning


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Pool sizing only applies to pooled engines; SQLite uses its own pool
    if not app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        engine_options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
        engine_options.setdefault("pool_size", app.config["DB_POOL_SIZE"])
        engine_options.setdefault("max_overflow", app.config["DB_MAX_OVERFLOW"])
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    pinning.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.batches import batches_bp
    from .routes.checkpoints import checkpoints_bp
    from .routes.products import products_bp
    from .routes.usage import usage_bp
    from .routes.rewards import rewards_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(batches_bp)
    app.register_blueprint(checkpoints_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(usage_bp)
    app.register_blueprint(rewards_bp)

    @app.after_request
    def add_cors_headers(response):
        # Scan and verify pages are served from other origins
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    @app.errorhandler(ServiceError)
    def handle_service_error(e: ServiceError):
        body = e.to_dict()
        if e.status_code >= 500:
            app.logger.error("%s: %s", e.message, e.details)
            if not app.config.get("EXPOSE_ERROR_DETAILS"):
                body.pop("details", None)
        return jsonify(body), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"success": False, "error": e.description}), e.code
        app.logger.exception("Unhandled error on request")
        body = {"success": False, "error": "Internal server error"}
        if app.config.get("EXPOSE_ERROR_DETAILS"):
            body["details"] = str(e)
        return jsonify(body), 500

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
