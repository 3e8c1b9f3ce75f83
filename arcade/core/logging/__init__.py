"""
Arcade Logging Infrastructure

Exports the structured logging subsystem and the log context helpers.
"""

from arcade.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    current_log_context,
    get_logger,
    get_logging_status,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_status",
    "LogContext",
    "current_log_context",
    "ContextFilter",
    "JSONFormatter",
]
