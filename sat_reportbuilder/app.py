"""
Application factory.
"""

import logging
from typing import Any, Optional, Union

from flask import Flask, jsonify, request
from flask.cli import FlaskGroup
from werkzeug.exceptions import HTTPException

from .base import ReportBuilder
from .cli import sat
from .config import Config
from .exceptions import MissingConfigurationError
from .models.sqla import db

log = logging.getLogger(__name__)

CONFIG_ENVVAR = "SAT_REPORTBUILDER_CONFIG"

ERROR_MESSAGES = {
    404: "Route not found",
    405: "Method not allowed",
    413: "File too large",
    429: "Too many requests, please try again later",
    500: "Internal Server Error",
}


def _error(code: int, message: str):
    response = jsonify(success=False, error={"message": message})
    response.status_code = code
    return response


def configure_logging(app: Flask) -> None:
    logging.basicConfig(format=app.config["LOG_FORMAT"])
    logging.getLogger().setLevel(app.config["LOG_LEVEL"])


def register_error_handlers(app: Flask) -> None:
    def handle_http_exception(e: HTTPException):
        message = ERROR_MESSAGES.get(e.code) or e.description
        if e.code == 429 and e.description:
            message = f"{ERROR_MESSAGES[429]} ({e.description})"
        return _error(e.code or 500, message)

    def handle_exception(e: Exception):
        log.exception(e)
        db.session.rollback()
        return _error(500, ERROR_MESSAGES[500])

    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_exception)


def create_app(config: Optional[Union[str, object, dict]] = None, **overrides: Any) -> Flask:
    """
    Create the SAT-ReportBuilder Flask app.

    :param config: a config object, an import path to one or a dict,
        loaded over the ``Config`` defaults
    :param overrides: config keys set last
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if isinstance(config, dict):
        app.config.from_mapping(config)
    elif config is not None:
        app.config.from_object(config)
    app.config.from_envvar(CONFIG_ENVVAR, silent=True)
    app.config.from_mapping(overrides)

    configure_logging(app)
    if not app.config.get("JWT_SECRET_KEY"):
        if not (app.debug or app.testing):
            raise MissingConfigurationError("JWT_SECRET_KEY")
        log.warning("JWT_SECRET_KEY is not set, falling back to SECRET_KEY")
        app.config["JWT_SECRET_KEY"] = app.config["SECRET_KEY"]

    db.init_app(app)
    with app.app_context():
        ReportBuilder(app)
    register_error_handlers(app)

    @app.before_request
    def log_request():
        log.info("%s %s from %s", request.method, request.path, request.remote_addr)

    app.cli.add_command(sat)
    return app


cli = FlaskGroup(create_app=create_app, help="SAT-ReportBuilder management commands")
