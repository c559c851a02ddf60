"""Manual store path.

Accepts inline base64 bytes or a source locator, applies the threshold gate,
and stores the (pass-through) result under a derived or caller-chosen key.
The worker is not involved. Unlike the event path, overwrite defaults to off
so manually named uploads are not clobbered by accident.

Body shapes:
    legacy: { fileBase64, fileName, writingUploadId }
    current: { bucket?, path?, dataBase64, contentType?, upsert?, cacheControl? }
    source:  { source: {bucket, name} | source_url, path?, deleteSource? }
"""

from __future__ import annotations

import base64
import binascii
import logging
import posixpath
import re
from typing import Any, Mapping, Optional

from compress_webhook.bootstrap import Runtime
from compress_webhook.core import gate
from compress_webhook.core.exceptions import StorageIOError, ValidationError, WebhookError
from compress_webhook.core.locator import Locator, resolve_locator
from compress_webhook.core.security import check_bearer
from compress_webhook.core.utils import epoch_millis, utc_now_iso
from compress_webhook.services.responses import ResponseTuple, create_error_response

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:.*?;base64,")
DEFAULT_CONTENT_TYPE = "application/pdf"
DEFAULT_CACHE_CONTROL = "3600"
KEY_PREFIX = "compressed"
OVERWRITE_HINT = "If you intended to overwrite, send upsert: true"


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def decode_base64(data: str) -> bytes:
    """Decode plain base64 or a ``data:...;base64,`` URL."""
    cleaned = DATA_URL_PREFIX.sub("", data.strip(), count=1)
    try:
        return base64.b64decode(cleaned)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 data: {e}", original_error=e) from e


def compress_bytes(data: bytes) -> bytes:
    """Pass-through: the manual path stores bytes unchanged."""
    return data


def _source_locator(body: Mapping[str, Any], default_bucket: str) -> Optional[Locator]:
    source = body.get("source")
    if isinstance(source, Mapping):
        return resolve_locator(source, default_bucket=default_bucket)
    source_url = _text(body.get("source_url")) or _text(body.get("sourceUrl"))
    if source_url:
        return resolve_locator({"url": source_url}, default_bucket=default_bucket)
    return None


def destination_key(body: Mapping[str, Any], source: Optional[Locator] = None) -> str:
    """``path`` if given, else a time-stamped key under ``compressed/``."""
    path = _text(body.get("path"))
    if path:
        return path
    file_name = _text(body.get("fileName"))
    if not file_name and source is not None:
        file_name = posixpath.basename(source.name)
    if not file_name:
        raise ValidationError(
            'Missing path and fileName: provide "path" (recommended) or legacy "fileName" to build a key.'
        )
    return f"{KEY_PREFIX}/{epoch_millis()}-{file_name}"


def link_writing_upload(runtime: Runtime, upload_id: Any, key: str, size: int) -> bool:
    """Best-effort link of the stored object to an uploads row."""
    now = utc_now_iso()
    try:
        runtime.records.update(runtime.config.uploads_table, upload_id, {
            "compressed_status": "done",
            "compressed_path": key,
            "compressed_size_bytes": size,
            "compressed_at": now,
            "updated_at": now,
        })
    except Exception as e:
        logger.warning("[store] %s update failed for %s: %s", runtime.config.uploads_table, upload_id, e)
        return False
    return True


def handle_store(body: Any, runtime: Runtime, auth_header: Optional[str] = None) -> ResponseTuple:
    """Handle one manual store request and return ``(body, status)``."""
    upsert = False
    try:
        check_bearer(auth_header, runtime.config.webhook_secret)
        runtime.config.require_store_settings()
        if not isinstance(body, Mapping):
            raise ValidationError("Request body must be a JSON object")

        config = runtime.config
        bucket = _text(body.get("bucket")) or config.default_bucket
        content_type = _text(body.get("contentType")) or DEFAULT_CONTENT_TYPE
        cache_control = str(body.get("cacheControl") or DEFAULT_CACHE_CONTROL)
        upsert = body.get("upsert") if isinstance(body.get("upsert"), bool) else False

        b64 = _text(body.get("dataBase64")) or _text(body.get("fileBase64"))
        source = None if b64 else _source_locator(body, config.default_bucket)
        if not b64 and source is None:
            raise ValidationError(
                "Missing data: provide dataBase64 (preferred), fileBase64, or a source locator"
            )
        key = destination_key(body, source)

        if b64:
            data = decode_base64(b64)
        else:
            data = runtime.blobs.download(source.bucket, source.name)

        decision = gate.decide(len(data), config.threshold_bytes)
        if isinstance(decision, gate.Skip):
            logger.info("[store] Skipping %s/%s: %s", bucket, key, decision.reason)
            return {"ok": True, "skipped": True, "reason": decision.reason, "bucket": bucket, "path": key}, 200

        output = compress_bytes(data)
        runtime.blobs.upload(
            bucket,
            key,
            output,
            content_type=content_type,
            overwrite=upsert,
            cache_control=cache_control,
        )

        source_deleted = False
        if source is not None and body.get("deleteSource") is True and (source.bucket, source.name) != (bucket, key):
            runtime.blobs.delete(source.bucket, source.name)
            source_deleted = True

        upload_id = body.get("writingUploadId")
        linked = False
        if upload_id:
            linked = link_writing_upload(runtime, upload_id, key, len(output))

        response = {
            "ok": True,
            "bucket": bucket,
            "path": key,
            "bytes_written": len(output),
            "contentType": content_type,
            "upsert": upsert,
            "writingUploadUpdated": linked,
        }
        if source is not None:
            response["source"] = source.as_dict()
            response["sourceDeleted"] = source_deleted
        return response, 200

    except StorageIOError as exc:
        logger.error("[store] %s failed: %s", exc.operation or "storage", exc.message)
        hint = OVERWRITE_HINT if exc.operation == "upload" and not upsert else None
        return create_error_response(exc, 500, hint=hint)
    except WebhookError as exc:
        logger.warning("[store] Rejected: %s", exc.message)
        return create_error_response(exc)
    except Exception as exc:
        logger.exception("[/api/store] Uncaught error")
        return create_error_response(exc, 500)
