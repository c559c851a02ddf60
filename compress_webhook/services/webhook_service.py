"""Storage-event path: one webhook delivery, one object.

Flow: auth -> locator -> threshold gate -> (skipped) or
(pending -> worker -> done | error). Every fault is turned into a response
here; nothing reaches the host runtime.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from compress_webhook.bootstrap import Runtime
from compress_webhook.core import gate
from compress_webhook.core.exceptions import TooLarge, UpstreamFailure, ValidationError, WebhookError
from compress_webhook.core.locator import resolve_locator
from compress_webhook.core.security import check_bearer
from compress_webhook.services.responses import ResponseTuple, create_error_response

logger = logging.getLogger(__name__)


def extract_record(payload: Any) -> Mapping[str, Any]:
    """Unwrap ``{record: ...}`` / ``{new: ...}`` envelopes; bare rows pass through."""
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    for key in ("record", "new"):
        inner = payload.get(key)
        if isinstance(inner, Mapping):
            return inner
    return payload


def _overwrite_flag(payload: Mapping[str, Any]) -> bool:
    value = payload.get("overwrite")
    return value if isinstance(value, bool) else True


def handle_event(payload: Any, runtime: Runtime, auth_header: Optional[str] = None) -> ResponseTuple:
    """Handle one storage-event delivery and return ``(body, status)``."""
    record_id = None
    try:
        check_bearer(auth_header, runtime.config.webhook_secret)
        runtime.config.require_event_settings()

        record = extract_record(payload)
        record_id = record.get("id")
        locator = resolve_locator(record, default_bucket=runtime.config.default_bucket)
        logger.info(
            "[%s] Event for %s/%s (via %s)", record_id, locator.bucket, locator.name, locator.source.value
        )

        tracker = runtime.tracker
        decision = gate.decide(gate.size_hint(record), runtime.config.threshold_bytes)
        if isinstance(decision, gate.Skip):
            tracker.mark_skipped(record_id, decision.reason)
            return {
                "ok": True,
                "skipped": True,
                "reason": decision.reason,
                **locator.as_dict(),
            }, 200

        with tracker.tracking(record_id) as job:
            try:
                result = runtime.compressor.compress(locator, overwrite=_overwrite_flag(payload))
            except TooLarge as exc:
                job.error(exc.marker)
                return {**exc.details, "ok": False, "error": TooLarge.marker}, 200
            except UpstreamFailure as exc:
                logger.warning("[%s] Compression failed: %s", record_id, exc.message)
                job.error(exc.marker)
                return create_error_response(exc)
            job.done(result)

        return {**result.to_dict(), **locator.as_dict(), "ok": True}, 200

    except WebhookError as exc:
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s", record_id, exc.error_type, exc.message)
        else:
            logger.warning("[%s] Rejected: %s", record_id, exc.message)
        return create_error_response(exc)
    except Exception as exc:
        logger.exception("[%s] Unhandled error while handling storage event", record_id)
        return create_error_response(exc, 500)
