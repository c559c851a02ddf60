"""Application configuration loading."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from compress_webhook.core.exceptions import ConfigurationError
from compress_webhook.core.utils import env_float, env_int, env_list, env_str

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_BYTES: int = 204800  # 200 KB
DEFAULT_COMPRESSOR_TIMEOUT: float = 120.0
DEFAULT_STORAGE_TIMEOUT: float = 60.0
DEFAULT_MAX_CONTENT_LENGTH: int = 50 * 1024 * 1024  # base64 uploads are large


@dataclass(frozen=True)
class RuntimeConfig:
    """Runtime configuration values consumed by the handlers.

    Built once per process by ``load_runtime_config`` and handed to every
    invocation; nothing reads the environment after startup.
    """

    supabase_url: str = ""
    supabase_service_role: str = ""
    default_bucket: str = ""
    webhook_secret: str = ""
    allowed_origins: tuple[str, ...] = ()
    compressor_url: str = ""
    compressor_secret: str = ""
    threshold_bytes: int = DEFAULT_THRESHOLD_BYTES
    compressor_timeout_seconds: float = DEFAULT_COMPRESSOR_TIMEOUT
    storage_timeout_seconds: float = DEFAULT_STORAGE_TIMEOUT
    status_table: str = "pdf_storage"
    uploads_table: str = "Writing_Uploads"
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH

    def _require(self, required: dict[str, str]) -> None:
        missing = [env_name for env_name, value in required.items() if not value]
        if missing:
            raise ConfigurationError.missing(missing)

    def require_event_settings(self) -> None:
        """Settings the storage-event path cannot run without."""
        self._require({
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_SERVICE_ROLE": self.supabase_service_role,
            "PDF_COMPRESSOR_URL": self.compressor_url,
        })

    def require_store_settings(self) -> None:
        """Settings the manual store path cannot run without."""
        self._require({
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_SERVICE_ROLE": self.supabase_service_role,
            "SUPABASE_BUCKET": self.default_bucket,
        })


def load_runtime_config() -> RuntimeConfig:
    """Load runtime configuration from the environment."""
    threshold = env_int("COMPRESS_THRESHOLD_BYTES", DEFAULT_THRESHOLD_BYTES)
    if threshold < 0:
        logger.warning("[settings] Negative COMPRESS_THRESHOLD_BYTES=%s; using %s", threshold, DEFAULT_THRESHOLD_BYTES)
        threshold = DEFAULT_THRESHOLD_BYTES

    compressor_timeout = env_float("COMPRESSOR_TIMEOUT_SECONDS", DEFAULT_COMPRESSOR_TIMEOUT)
    if compressor_timeout <= 0:
        compressor_timeout = DEFAULT_COMPRESSOR_TIMEOUT
    storage_timeout = env_float("STORAGE_TIMEOUT_SECONDS", DEFAULT_STORAGE_TIMEOUT)
    if storage_timeout <= 0:
        storage_timeout = DEFAULT_STORAGE_TIMEOUT

    config = RuntimeConfig(
        supabase_url=env_str("SUPABASE_URL").rstrip("/"),
        supabase_service_role=env_str("SUPABASE_SERVICE_ROLE"),
        default_bucket=env_str("DEFAULT_PDF_BUCKET") or env_str("SUPABASE_BUCKET"),
        webhook_secret=env_str("WEBHOOK_SECRET"),
        allowed_origins=env_list("ALLOWED_ORIGINS"),
        compressor_url=env_str("PDF_COMPRESSOR_URL").rstrip("/"),
        compressor_secret=env_str("PDF_COMPRESSOR_SECRET"),
        threshold_bytes=threshold,
        compressor_timeout_seconds=compressor_timeout,
        storage_timeout_seconds=storage_timeout,
        status_table=env_str("STATUS_TABLE", "pdf_storage") or "pdf_storage",
        uploads_table=env_str("UPLOADS_TABLE", "Writing_Uploads") or "Writing_Uploads",
        max_content_length=max(1, env_int("MAX_CONTENT_LENGTH", DEFAULT_MAX_CONTENT_LENGTH)),
    )
    logger.info(
        "[settings] threshold=%s bytes, compressor_timeout=%ss, origins=%d, webhook_secret=%s",
        config.threshold_bytes,
        config.compressor_timeout_seconds,
        len(config.allowed_origins),
        "set" if config.webhook_secret else "unset",
    )
    return config
