"""Public observability primitives: structured logging and the per-dispatch debug collector."""

from actionflow.observability.debug import DebugCollector, DebugEntry
from actionflow.observability.logging import (
    ROOT_LOGGER_NAME,
    LoggingConfig,
    LogRedactor,
    StructuredLoggingHandle,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    logging_config_from_mapping,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "ROOT_LOGGER_NAME",
    "DebugCollector",
    "DebugEntry",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "logging_config_from_mapping",
    "setup_structured_logging",
    "shutdown_logging",
]
