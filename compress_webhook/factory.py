"""Flask app factory."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound, RequestEntityTooLarge

from compress_webhook import bootstrap
from compress_webhook.config import RuntimeConfig, load_runtime_config
from compress_webhook.routes.api_routes import api_bp
from compress_webhook.routes.web_routes import web_bp
from compress_webhook.services.responses import create_error_response

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
    )


def handle_large_file(e):
    max_mb = int(current_app.config["MAX_CONTENT_LENGTH"] / (1024 * 1024))
    message = f"Request body too large (max {max_mb}MB)"
    return jsonify({
        "ok": False,
        "error": message,
        "error_type": "RequestTooLarge",
        "error_message": message,
    }), 413


def handle_http_exception(e):
    if isinstance(e, NotFound):
        logger.info("404 %s %s", request.method, request.path)
    else:
        logger.warning("HTTP %s on %s %s: %s", e.code, request.method, request.path, e.description)
    body, status = create_error_response(e, e.code or 400)
    body["error"] = body["error_message"] = e.name
    body["error_type"] = "HTTPException"
    response = jsonify(body)
    if isinstance(e, MethodNotAllowed) and e.valid_methods:
        response.headers["Allow"] = ", ".join(e.valid_methods)
    return response, status


def handle_error(e):
    logger.exception("Unhandled error")
    body, status = create_error_response(e, 500)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    """Register HTTP and framework error handlers."""
    app.register_error_handler(RequestEntityTooLarge, handle_large_file)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_error)


def create_app(
    config: Optional[RuntimeConfig] = None,
    runtime: Optional[bootstrap.Runtime] = None,
) -> Flask:
    """Create and configure the Flask application.

    ``runtime`` lets callers (tests, other hosts) inject collaborators; by
    default Supabase and worker clients are built from ``config``.
    """
    configure_logging()
    app = Flask(__name__)

    if runtime is None:
        runtime = bootstrap.build_runtime(config or load_runtime_config())
    app.config["MAX_CONTENT_LENGTH"] = runtime.config.max_content_length
    bootstrap.install_runtime(app, runtime)

    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)
    register_error_handlers(app)
    return app
