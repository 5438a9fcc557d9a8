from __future__ import annotations

import logging
import os
from flask import Flask, jsonify

from .extensions import db, login_manager, migrate, csrf, ENGINE_KEY
from .services.assignments import AssignmentEngine
from .services.store import SqlParticipantStore
from .views.auth import auth_bp
from .views.errors import register_error_handlers
from .views.events import events_bp
from .views.reveal import reveal_bp
from .cli import draw_cli


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///santadraw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Draw behaviour
    app.config["SANTA_REVEAL_POLICY"] = os.environ.get("SANTA_REVEAL_POLICY", "idempotent").strip()
    app.config["SANTA_DRAW_LOCK_TIMEOUT"] = float(os.environ.get("SANTA_DRAW_LOCK_TIMEOUT", "5"))
    app.config["REVEAL_TOKEN_KEY"] = os.environ.get("REVEAL_TOKEN_KEY", "").strip()

    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO").upper()

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("santadraw").setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(error="Unauthorized", message="Log in first."), 401

    app.extensions[ENGINE_KEY] = AssignmentEngine(
        SqlParticipantStore(),
        rng=app.config.get("SANTA_RNG"),
        reveal_policy=app.config["SANTA_REVEAL_POLICY"],
        lock_timeout=app.config["SANTA_DRAW_LOCK_TIMEOUT"],
    )

    # Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(reveal_bp)
    register_error_handlers(app)

    app.cli.add_command(draw_cli)

    return app
