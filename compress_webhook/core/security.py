"""Bearer-token and cross-origin checks."""

from __future__ import annotations

import hmac
from typing import Iterable, Mapping, Optional

from compress_webhook.core.exceptions import AuthError

CORS_ALLOW_HEADERS = "Authorization, Content-Type, X-Requested-With"
CORS_ALLOW_METHODS = "POST, OPTIONS"


def bearer_token(auth_header: Optional[str]) -> str:
    if not auth_header or not auth_header.startswith("Bearer "):
        return ""
    return auth_header[7:].strip()


def check_bearer(auth_header: Optional[str], secret: str) -> None:
    """Reject the request unless the bearer token matches ``secret``.

    No secret configured means the check is off.
    """
    if not secret:
        return
    token = bearer_token(auth_header)
    if not token or not hmac.compare_digest(token.encode(), secret.encode()):
        raise AuthError.invalid_token()


def is_origin_allowed(origin: Optional[str], allowed: Iterable[str]) -> bool:
    """Exact match, or ``*.suffix`` where the origin ends with ``.suffix``."""
    if not origin:
        return False
    for pattern in allowed:
        if pattern == origin:
            return True
        if pattern.startswith("*.") and origin.endswith(pattern[1:]):
            return True
    return False


def cors_headers(origin: Optional[str], allowed: Iterable[str]) -> Mapping[str, str]:
    """Response headers for an allowed origin; empty otherwise."""
    if not is_origin_allowed(origin, allowed):
        return {}
    return {
        "Vary": "Origin",
        "Access-Control-Allow-Origin": origin or "",
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
    }


def check_origin(origin: Optional[str], allowed: Iterable[str]) -> None:
    """Requests without an Origin header are server-to-server and pass."""
    if origin and not is_origin_allowed(origin, allowed):
        raise AuthError.origin_not_allowed(origin)
