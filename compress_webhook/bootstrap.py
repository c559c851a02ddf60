"""Wire configuration and collaborators together once per app."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app

from compress_webhook.config import RuntimeConfig
from compress_webhook.services.dispatcher import CompressorClient
from compress_webhook.services.status_service import StatusTracker
from compress_webhook.services.storage import BlobStore, RecordStore, SupabaseStorage, SupabaseTable

logger = logging.getLogger(__name__)

EXTENSION_KEY = "compress_webhook"


@dataclass
class Runtime:
    """Everything a handler invocation needs, passed in explicitly."""

    config: RuntimeConfig
    blobs: BlobStore
    records: RecordStore
    compressor: CompressorClient

    @property
    def tracker(self) -> StatusTracker:
        return StatusTracker(self.records, table=self.config.status_table)


def build_runtime(
    config: RuntimeConfig,
    blobs: Optional[BlobStore] = None,
    records: Optional[RecordStore] = None,
    compressor: Optional[CompressorClient] = None,
) -> Runtime:
    """Create default Supabase/worker clients for anything not supplied."""
    if blobs is None:
        blobs = SupabaseStorage(config.supabase_url, config.supabase_service_role, config.storage_timeout_seconds)
    if records is None:
        records = SupabaseTable(config.supabase_url, config.supabase_service_role, config.storage_timeout_seconds)
    if compressor is None:
        compressor = CompressorClient(
            config.compressor_url,
            config.compressor_secret,
            timeout_seconds=config.compressor_timeout_seconds,
        )
    return Runtime(config=config, blobs=blobs, records=records, compressor=compressor)


def install_runtime(app: Flask, runtime: Runtime) -> None:
    app.extensions[EXTENSION_KEY] = runtime
    logger.info("Runtime installed (status_table=%s)", runtime.config.status_table)


def get_runtime() -> Runtime:
    """Runtime of the app serving the current request."""
    return current_app.extensions[EXTENSION_KEY]
