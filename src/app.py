"""Application factory for the College Resource Portal."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from flask import Flask, current_app, jsonify
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from flask_wtf.csrf import CSRFError

from .config import BaseConfig, get_config
from .data_access import users_dao
from .data_access.db import init_app as init_db_app
from .models.entities import User
from .services import notifier as notifier_service
from .services.errors import PortalError

csrf = CSRFProtect()
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    """Look up a user for Flask-Login session handling."""
    if not user_id:
        return None
    return users_dao.get_user_by_id(int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def create_app(config_object: type[BaseConfig] | None = None, notifier: Optional[Any] = None) -> Flask:
    """Create and configure the Flask application instance.

    ``notifier`` replaces the SMTP notifier, e.g. with a recording double in tests.
    """

    app = Flask(__name__)

    config_cls = config_object or get_config()
    app.config.from_object(config_cls)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    csrf.init_app(app)
    login_manager.init_app(app)
    init_db_app(app)
    notifier_service.init_app(app, notifier)

    register_blueprints(app)
    register_error_handlers(app)

    @app.route("/")
    def index():
        """Report that the service is up."""

        return jsonify({"service": "college-resource-portal", "status": "ok"})

    return app


def register_blueprints(app: Flask) -> None:
    """Import and register application blueprints."""

    from .controllers import (  # pylint: disable=import-outside-toplevel
        admin,
        approvals,
        auth,
        resources,
        rooms,
    )

    app.register_blueprint(auth.bp)
    app.register_blueprint(resources.bp)
    app.register_blueprint(rooms.bp)
    app.register_blueprint(approvals.bp)
    app.register_blueprint(admin.bp)


def register_error_handlers(app: Flask) -> None:
    """Register JSON error handlers."""

    @app.errorhandler(PortalError)
    def portal_error(error: PortalError) -> tuple[Any, int]:
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(CSRFError)
    def csrf_failure(error: CSRFError) -> tuple[Any, int]:
        return jsonify({"error": error.description}), 400

    @app.errorhandler(403)
    def forbidden(error: Exception) -> tuple[Any, int]:
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found(error: Exception) -> tuple[Any, int]:
        return jsonify({"error": "We could not locate the resource you requested."}), 404

    @app.errorhandler(sqlite3.Error)
    def store_failure(error: sqlite3.Error) -> tuple[Any, int]:
        current_app.logger.exception("Store failure: %s", error)
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(500)
    def server_error(error: Exception) -> tuple[Any, int]:
        return jsonify({"error": "An unexpected error occurred. The team has been notified."}), 500
