"""
Core utilities and configuration for the SERP position tracker.

Modules:
    config: Application settings and validated tracking configuration
    database: Async engine and session management
    exceptions: Exception hierarchy with structured context
    logging: Logging configuration
    clock: Injectable time source

Usage:
    from core.config import settings, load_tracking_config
    from core.database import async_session_maker
    from core.exceptions import ProviderError, StorageError
    from core.logging import setup_logging
"""

__all__ = [
    "settings",
    "load_tracking_config",
    "setup_logging",
    "SystemClock",
    # Exceptions
    "TrackerException",
    "StorageError",
    "SyncRunStateError",
    "ProviderError",
    "RateLimitedError",
    "ProviderTimeoutError",
    "InvalidResponseError",
    "AuthError",
    "ConfigError",
    "KeywordImportError",
    "RetryableError",
    "NonRetryableError",
]
