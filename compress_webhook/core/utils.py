"""Shared helpers for the webhook service.

Contains:
- env_*: typed environment readers with safe fallbacks
- redact_url_for_log: strip secrets from URLs before logging
- utc_now_iso / epoch_millis: timestamps used in status records and keys
"""

import logging
import os
import time
from datetime import datetime, timezone
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def env_str(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip()


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[settings] Invalid %s=%s; using %s", name, raw, default)
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[settings] Invalid %s=%s; using %s", name, raw, default)
        return default


def env_list(name: str) -> tuple[str, ...]:
    """Read a comma-separated variable, dropping blanks."""
    raw = os.environ.get(name) or ""
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def redact_url_for_log(url: str, max_len: int = 200) -> str:
    """Return a URL safe for logs (no query/fragment/userinfo)."""
    if not url or not isinstance(url, str):
        return "EMPTY/NONE"

    trimmed = url.strip()
    try:
        parsed = urlparse(trimmed)
        if not parsed.scheme or not parsed.netloc:
            safe = trimmed
        else:
            host = parsed.hostname or ""
            if parsed.port:
                netloc = f"{host}:{parsed.port}"
            else:
                netloc = host
            safe = parsed._replace(netloc=netloc, query="", fragment="", params="").geturl()
    except ValueError:
        safe = trimmed

    if len(safe) > max_len:
        return safe[:max_len] + "..."
    return safe


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def epoch_millis() -> int:
    return int(time.time() * 1000)
