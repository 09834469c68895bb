"""
Custom exceptions for the position tracker with structured error context.

Every exception carries a human-readable message, a context dictionary
and (optionally) the underlying exception, so that failures can be logged
and stored on a sync run without losing detail.

Exception Hierarchy:
    TrackerException (base)
    ├── StorageError
    │   └── SyncRunStateError
    ├── ProviderError
    │   ├── RateLimitedError      (retryable)
    │   ├── ProviderTimeoutError  (retryable)
    │   ├── InvalidResponseError  (non-retryable)
    │   └── AuthError             (non-retryable)
    ├── ConfigError
    ├── KeywordImportError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class TrackerException(Exception):
    """
    Base exception for all tracker errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (keyword, operation, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = dict(context or {})
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{self.original_exception}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(TrackerException):
    """
    Mixin for errors that may succeed when the same call is repeated.

    The batch scheduler only ever retries subclasses of this type.
    """
    pass


class NonRetryableError(TrackerException):
    """Mixin for errors that will fail the same way on every attempt."""
    pass


# ============================================================================
# Storage Errors
# ============================================================================

class StorageError(TrackerException):
    """
    Raised when the durable store is unreachable or a write/read fails.

    Context should include:
        - operation: Repository operation that failed
        - keyword_id / sync_run_id: Affected row (if applicable)
    """
    pass


class SyncRunStateError(StorageError):
    """Raised when a sync run is finalized twice or does not exist."""
    pass


# ============================================================================
# Provider Errors
# ============================================================================

class ProviderError(TrackerException):
    """
    Base exception for ranking-provider failures.

    Context should include:
        - keyword: Keyword being looked up
        - location_code: Location of the lookup
        - status_code: HTTP or provider task status code (if applicable)
    """
    pass


class RateLimitedError(RetryableError, ProviderError):
    """Provider throttled the request (HTTP 429 or provider rate limit status)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after is not None:
            self.context["retry_after"] = retry_after


class ProviderTimeoutError(RetryableError, ProviderError):
    """Provider did not answer within the configured timeout."""
    pass


class InvalidResponseError(NonRetryableError, ProviderError):
    """Provider answered with an undecodable or unsuccessful payload."""
    pass


class AuthError(NonRetryableError, ProviderError):
    """Provider rejected the configured credentials (HTTP 401, 403)."""
    pass


# ============================================================================
# Configuration / Import Errors
# ============================================================================

class ConfigError(NonRetryableError):
    """
    Invalid or missing configuration, detected at startup.

    Context should include:
        - field_errors: List of offending settings and reasons
    """
    pass


class KeywordImportError(NonRetryableError):
    """
    Raised when a keyword import source cannot be read at all.

    Context should include:
        - source: File path of the import
        - project_id: Project filter (if any)
    """
    pass
