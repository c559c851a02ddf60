"""API routes."""

import logging

from flask import Blueprint, jsonify, request

from compress_webhook.bootstrap import get_runtime
from compress_webhook.core.exceptions import AuthError
from compress_webhook.core.security import check_origin, cors_headers
from compress_webhook.services import ingest_service, webhook_service
from compress_webhook.services.responses import create_error_response

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


@api_bp.post("/compress-and-store")
def compress_and_store():
    """Storage-event webhook."""
    runtime = get_runtime()
    payload = request.get_json(silent=True)
    body, status = webhook_service.handle_event(
        payload, runtime, auth_header=request.headers.get("Authorization")
    )
    return jsonify(body), status


@api_bp.route("/store", methods=["POST", "OPTIONS"])
def store():
    """Manual upload of bytes or a source object."""
    runtime = get_runtime()
    origin = request.headers.get("Origin")
    headers = cors_headers(origin, runtime.config.allowed_origins)

    if request.method == "OPTIONS":
        return "", 204, headers

    try:
        check_origin(origin, runtime.config.allowed_origins)
    except AuthError as exc:
        logger.warning("[store] %s", exc.message)
        body, status = create_error_response(exc)
        return jsonify(body), status

    payload = request.get_json(silent=True)
    body, status = ingest_service.handle_store(
        payload, runtime, auth_header=request.headers.get("Authorization")
    )
    return jsonify(body), status, headers
