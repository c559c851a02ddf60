"""Client for the external PDF compression worker.

One call per invocation, never retried here. Redelivery of the triggering
event is the only retry path.

``requests`` applies its timeout to the connect and to each socket read, so a
worker that trickles bytes could outlive it. The response is therefore
streamed and checked against a single deadline for the whole call.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

import requests

from compress_webhook.core.exceptions import TooLarge, UpstreamFailure
from compress_webhook.core.locator import Locator
from compress_webhook.core.utils import redact_url_for_log

logger = logging.getLogger(__name__)

TOO_LARGE_ERROR = "too_large"
RATIO_DIGITS = 3
READ_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class CompressionResult:
    """Normalized worker response."""

    ok: bool
    original_bytes: Optional[int] = None
    compressed_bytes: Optional[int] = None
    ratio: Optional[float] = None
    overwrote: Optional[bool] = None
    pass_used: Optional[Any] = None
    hit_target: Optional[bool] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_result(body: Dict[str, Any]) -> CompressionResult:
    """Collapse both worker response shapes into one ``CompressionResult``.

    Overwrite-in-place workers report ``compressed_bytes`` and ``pass_used``;
    pass-through workers report ``bytes_written`` and ``quality``.
    """
    original = _int_or_none(body.get("original_bytes"))
    compressed = _int_or_none(body.get("compressed_bytes"))
    if compressed is None:
        compressed = _int_or_none(body.get("bytes_written"))

    ratio = _float_or_none(body.get("ratio"))
    if ratio is None and original and compressed is not None:
        ratio = round(compressed / original, RATIO_DIGITS)

    pass_used = body.get("pass_used")
    if pass_used is None:
        pass_used = body.get("quality")

    return CompressionResult(
        ok=bool(body.get("ok")),
        original_bytes=original,
        compressed_bytes=compressed,
        ratio=ratio,
        overwrote=body.get("overwrote"),
        pass_used=pass_used,
        hit_target=body.get("hit_target"),
        error=body.get("error"),
    )


class CompressorClient:
    """Invokes ``POST {base_url}/compress`` on the worker."""

    def __init__(
        self,
        base_url: str,
        secret: str,
        timeout_seconds: float = 120.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.clock = clock

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        chunks = []
        for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
            if self.clock() > deadline:
                raise requests.exceptions.ReadTimeout("compressor-service exceeded total deadline")
            if chunk:
                chunks.append(chunk)
        if self.clock() > deadline:
            raise requests.exceptions.ReadTimeout("compressor-service exceeded total deadline")
        return b"".join(chunks)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/compress"

    def compress(self, locator: Locator, overwrite: bool = True) -> CompressionResult:
        """Ask the worker to compress ``locator``.

        Raises:
            TooLarge: the worker refused the object as over its size cap.
            UpstreamFailure: timeout (whole call, not per read), transport
                error, non-2xx, or ``ok`` false.
        """
        payload = {"bucket": locator.bucket, "name": locator.name, "overwrite": overwrite}
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.secret}",
        }
        logger.info(
            "[dispatch] POST %s bucket=%s name=%s overwrite=%s",
            redact_url_for_log(self.endpoint),
            locator.bucket,
            locator.name,
            overwrite,
        )
        deadline = self.clock() + self.timeout_seconds
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self.timeout_seconds,
                stream=True,
            )
            try:
                raw = self._read_body(response, deadline)
            finally:
                response.close()
        except requests.exceptions.Timeout as e:
            logger.warning("[dispatch] Timed out after %ss for %s/%s", self.timeout_seconds, locator.bucket, locator.name)
            failure = UpstreamFailure.timeout(self.timeout_seconds)
            failure.original_error = e
            raise failure from e
        except requests.exceptions.RequestException as e:
            raise UpstreamFailure(f"compressor-service request failed: {e}", original_error=e) from e

        try:
            body = json.loads(raw)
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if body.get("error") == TOO_LARGE_ERROR or response.status_code == 413:
            logger.info("[dispatch] Worker refused %s/%s as too large", locator.bucket, locator.name)
            raise TooLarge(TOO_LARGE_ERROR, details=body)

        if not response.ok or not body.get("ok"):
            message = body.get("error") or f"compressor-service HTTP {response.status_code}"
            raise UpstreamFailure(str(message), upstream_status=response.status_code)

        result = normalize_result(body)
        logger.info(
            "[dispatch] Done %s/%s: %s -> %s bytes (ratio=%s)",
            locator.bucket,
            locator.name,
            result.original_bytes,
            result.compressed_bytes,
            result.ratio,
        )
        return result
