"""Blob and record collaborators.

The handlers depend only on the two small protocols below so tests can supply
in-memory fakes. The Supabase implementations talk to the Storage REST API and
PostgREST with ``requests``; every call is bounded by a timeout and every
failure surfaces as ``StorageIOError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

import requests

from compress_webhook.core.exceptions import StorageIOError

logger = logging.getLogger(__name__)

USER_AGENT = "compress-webhook/1.0"


class BlobStore(Protocol):
    def download(self, bucket: str, name: str) -> bytes: ...

    def upload(
        self,
        bucket: str,
        name: str,
        data: bytes,
        *,
        content_type: str,
        overwrite: bool,
        cache_control: str,
    ) -> None: ...

    def delete(self, bucket: str, name: str) -> None: ...


class RecordStore(Protocol):
    def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> None: ...


class _SupabaseClient:
    def __init__(self, base_url: str, service_role: str, timeout: float, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": service_role,
            "Authorization": f"Bearer {service_role}",
            "User-Agent": USER_AGENT,
        })

    def _request(self, operation: str, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise StorageIOError(
                f"{operation} timed out after {self.timeout:g}s", operation=operation, original_error=e
            ) from e
        except requests.exceptions.RequestException as e:
            raise StorageIOError(f"{operation} failed: {e}", operation=operation, original_error=e) from e

        if response.status_code >= 400:
            raise StorageIOError(
                f"{operation} failed (HTTP {response.status_code}): {_error_message(response)}",
                operation=operation,
            )
        return response


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "").strip()[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


def _object_path(bucket: str, name: str) -> str:
    return f"{quote(bucket, safe='')}/{quote(name.lstrip('/'), safe='/')}"


class SupabaseStorage(_SupabaseClient):
    """Supabase Storage over its REST API."""

    def _object_url(self, bucket: str, name: str) -> str:
        return f"{self.base_url}/storage/v1/object/{_object_path(bucket, name)}"

    def download(self, bucket: str, name: str) -> bytes:
        response = self._request("download", "GET", self._object_url(bucket, name))
        logger.info("[storage] Downloaded %s/%s (%s bytes)", bucket, name, len(response.content))
        return response.content

    def upload(
        self,
        bucket: str,
        name: str,
        data: bytes,
        *,
        content_type: str = "application/pdf",
        overwrite: bool = False,
        cache_control: str = "3600",
    ) -> None:
        headers = {
            "Content-Type": content_type,
            "x-upsert": "true" if overwrite else "false",
            "cache-control": f"max-age={cache_control}",
        }
        self._request("upload", "POST", self._object_url(bucket, name), data=data, headers=headers)
        logger.info("[storage] Uploaded %s/%s (%s bytes, upsert=%s)", bucket, name, len(data), overwrite)

    def delete(self, bucket: str, name: str) -> None:
        url = f"{self.base_url}/storage/v1/object/{quote(bucket, safe='')}"
        self._request("delete", "DELETE", url, json={"prefixes": [name]})
        logger.info("[storage] Deleted %s/%s", bucket, name)


class SupabaseTable(_SupabaseClient):
    """Update-by-id over PostgREST."""

    def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> None:
        url = f"{self.base_url}/rest/v1/{quote(table, safe='')}"
        self._request(
            "update",
            "PATCH",
            url,
            params={"id": f"eq.{record_id}"},
            json=fields,
            headers={"Prefer": "return=minimal"},
        )
