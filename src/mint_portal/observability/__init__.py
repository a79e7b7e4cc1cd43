"""Observability helpers: structured logging and correlation context."""

from mint_portal.observability.logging import (
    LoggingConfig,
    LoggingHandle,
    correlation_scope,
    default_log_redactor,
    flush_logging,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "LoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
