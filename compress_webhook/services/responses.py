"""Response bodies shared by both entry points."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from compress_webhook.core.exceptions import WebhookError

ResponseTuple = Tuple[Dict[str, Any], int]


def get_error_status_code(error: Exception) -> int:
    """Map exception type to an HTTP status code."""
    if isinstance(error, WebhookError):
        return error.status_code
    if isinstance(error, ValueError):
        return 400
    return 500


def create_error_response(error: Exception, status_code: Optional[int] = None, **extra: Any) -> ResponseTuple:
    """Standardized error body.

    Carries ``error`` for existing callers and ``error_type``/``error_message``
    for clients that branch on the kind of failure.
    """
    if isinstance(error, WebhookError):
        message = error.message
        error_type = error.error_type
    else:
        message = str(error) or error.__class__.__name__
        error_type = "UnknownError"

    body: Dict[str, Any] = {
        "ok": False,
        "error": message,
        "error_type": error_type,
        "error_message": message,
    }
    body.update({k: v for k, v in extra.items() if v is not None})
    return body, status_code if status_code is not None else get_error_status_code(error)
