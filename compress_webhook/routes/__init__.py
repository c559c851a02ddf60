"""Route blueprints."""

from compress_webhook.routes.api_routes import api_bp
from compress_webhook.routes.web_routes import web_bp

__all__ = ["api_bp", "web_bp"]
