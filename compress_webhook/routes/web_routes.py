"""Health and diagnostics routes."""

import platform

from flask import Blueprint, jsonify

from compress_webhook.bootstrap import get_runtime

web_bp = Blueprint("web", __name__)


@web_bp.get("/health")
def health():
    return jsonify({"status": "ok"})


@web_bp.get("/api/diag-env")
def diag_env():
    """Report which settings are present without revealing them."""
    config = get_runtime().config
    return jsonify({
        "hasUrl": bool(config.supabase_url),
        "hasRole": bool(config.supabase_service_role),
        "hasCompressor": bool(config.compressor_url),
        "bucket": config.default_bucket or None,
        "python": platform.python_version(),
    })
