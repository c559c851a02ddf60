"""Derive a (bucket, object name) pair from heterogeneous event payloads.

Database webhooks have shipped several record shapes over time:

- storage rows with explicit ``bucket``/``bucket_id`` and ``name``
- application rows with legacy ``file_path``/``object_path``/``path``/``file_name``
- rows that only carry a public or signed object-store URL

``resolve_locator`` walks these in priority order. Explicit fields always win
over anything derived, and the configured default bucket is the last resort
for the bucket half only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import unquote, urlparse

from compress_webhook.core.exceptions import MissingLocator

EXPLICIT_BUCKET_FIELDS = ("bucket", "bucket_id")
EXPLICIT_NAME_FIELDS = ("name",)
LEGACY_NAME_FIELDS = ("file_path", "object_path", "path", "file_name")
URL_FIELDS = ("url", "public_url", "signed_url", "file_url", "source_url")
URL_MARKERS = ("/object/public/", "/object/signed/")


class LocatorSource(str, Enum):
    EXPLICIT = "explicit"
    LEGACY = "legacy"
    URL = "url"


@dataclass(frozen=True)
class Locator:
    """One stored object. ``source`` records which rule produced the name."""

    bucket: str
    name: str
    source: LocatorSource = LocatorSource.EXPLICIT

    def as_dict(self) -> dict:
        return {"bucket": self.bucket, "name": self.name}


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _looks_like_url(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def parse_storage_url(url: str) -> Optional[tuple[str, str]]:
    """Split an object-store URL into (bucket, name).

    ``https://x.supabase.co/storage/v1/object/public/My%20Bucket/a/b%20c.pdf``
    becomes ``("My Bucket", "a/b c.pdf")``. Returns None when the URL has no
    recognizable object path.
    """
    if not url:
        return None
    try:
        path = urlparse(url.strip()).path
    except ValueError:
        return None

    for marker in URL_MARKERS:
        idx = path.find(marker)
        if idx == -1:
            continue
        remainder = path[idx + len(marker):]
        # Runs of slashes collapse; encoded slashes survive decoding.
        segments = [unquote(seg) for seg in remainder.split("/") if seg]
        if len(segments) < 2:
            return None
        bucket, name = segments[0], "/".join(segments[1:])
        if not bucket or not name:
            return None
        return bucket, name
    return None


def _first_field(
    record: Mapping[str, Any],
    fields: tuple[str, ...],
    skip_urls: bool = False,
) -> Optional[str]:
    for field_name in fields:
        value = _text(record.get(field_name))
        if value and not (skip_urls and _looks_like_url(value)):
            return value
    return None


def _candidate_urls(record: Mapping[str, Any]) -> list[str]:
    urls = [_text(record.get(f)) for f in URL_FIELDS]
    # Legacy path fields sometimes carry a full URL instead of a key.
    urls.extend(_text(record.get(f)) for f in LEGACY_NAME_FIELDS)
    return [u for u in urls if u and _looks_like_url(u)]


def resolve_locator(
    record: Mapping[str, Any],
    default_bucket: Optional[str] = None,
) -> Locator:
    """Resolve the locator for ``record``.

    Raises:
        MissingLocator: if no rule yields a bucket or no rule yields a name.
    """
    if not isinstance(record, Mapping):
        raise MissingLocator.for_record(has_bucket=False, has_name=False)

    bucket = _first_field(record, EXPLICIT_BUCKET_FIELDS)
    name = _first_field(record, EXPLICIT_NAME_FIELDS)
    source = LocatorSource.EXPLICIT

    if not name:
        # URL values are left for the URL rule below.
        legacy = _first_field(record, LEGACY_NAME_FIELDS, skip_urls=True)
        if legacy:
            name = legacy
            source = LocatorSource.LEGACY

    if not bucket or not name:
        for url in _candidate_urls(record):
            parsed = parse_storage_url(url)
            if parsed is None:
                continue
            url_bucket, url_name = parsed
            if not name:
                name = url_name
                source = LocatorSource.URL
            bucket = bucket or url_bucket
            break

    if not bucket:
        bucket = _text(default_bucket)

    if not bucket or not name:
        raise MissingLocator.for_record(has_bucket=bool(bucket), has_name=bool(name))

    return Locator(bucket=bucket, name=name, source=source)
