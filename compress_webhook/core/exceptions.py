"""Custom exceptions for webhook-driven compression.

Every fault the handlers can raise maps to one of these types. Each carries an
``error_type`` for response bodies and a ``status_code`` for the HTTP layer.
"""

from typing import Optional


class WebhookError(Exception):
    """Base exception for all compress-webhook errors."""

    error_type: str = "WebhookError"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        # Allow instances to override status codes
        if hasattr(self, "status_code_override"):
            try:
                self.status_code = int(getattr(self, "status_code_override"))  # type: ignore[attr-defined]
            except (TypeError, ValueError):
                pass


class ConfigurationError(WebhookError):
    """Required settings are absent. Fatal for the request."""

    error_type: str = "ConfigurationError"
    status_code: int = 500

    @staticmethod
    def missing(names: list[str]) -> "ConfigurationError":
        return ConfigurationError(f"Missing required env: {', '.join(names)}")


class ValidationError(WebhookError):
    """Payload cannot be interpreted. Raised before any state mutation."""

    error_type: str = "ValidationError"
    status_code: int = 400


class MissingLocator(ValidationError):
    """Neither a bucket nor an object name could be derived from the payload."""

    error_type: str = "MissingLocator"

    @staticmethod
    def for_record(has_bucket: bool, has_name: bool) -> "MissingLocator":
        missing = []
        if not has_bucket:
            missing.append("bucket")
        if not has_name:
            missing.append("object path")
        return MissingLocator(f"Missing {' and '.join(missing)} from record")


class AuthError(WebhookError):
    """Bad bearer token or disallowed origin."""

    error_type: str = "AuthError"
    status_code: int = 401

    def __init__(self, message: str, status_code: int = 401) -> None:
        self.status_code_override = status_code
        super().__init__(message)

    @staticmethod
    def invalid_token() -> "AuthError":
        return AuthError("Unauthorized: invalid bearer token", status_code=401)

    @staticmethod
    def origin_not_allowed(origin: str) -> "AuthError":
        return AuthError(f"Origin not allowed: '{origin}'", status_code=403)


class UpstreamFailure(WebhookError):
    """The compression worker failed, answered with an error, or timed out."""

    error_type: str = "UpstreamFailure"
    status_code: int = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        timed_out: bool = False,
        original_error: Optional[Exception] = None,
    ) -> None:
        if timed_out:
            self.status_code_override = 504
        super().__init__(message, original_error=original_error)
        self.upstream_status = upstream_status
        self.timed_out = timed_out

    @property
    def marker(self) -> str:
        return "timeout" if self.timed_out else "upstream_failure"

    @staticmethod
    def timeout(seconds: float) -> "UpstreamFailure":
        return UpstreamFailure(
            f"compressor-service timed out after {seconds:g}s",
            timed_out=True,
        )


class TooLarge(WebhookError):
    """The worker refused the object because it exceeds its hard size cap.

    Not retryable, so it is never folded into ``UpstreamFailure``.
    """

    error_type: str = "TooLarge"
    status_code: int = 200
    marker: str = "too_large"

    def __init__(self, message: str = "too_large", details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class StorageIOError(WebhookError):
    """A blob or record collaborator call failed."""

    error_type: str = "StorageIOError"
    status_code: int = 502
    marker: str = "storage_io"

    def __init__(
        self,
        message: str,
        operation: str = "",
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.operation = operation
