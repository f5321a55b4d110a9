"""
Stepwise Utilities.

- Structured logging configuration with run context propagation
"""

from stepwise.utils.logging_config import (
    ColoredFormatter,
    ContextFilter,
    # Formatters
    JSONFormatter,
    LoggingConfig,
    clear_run_context,
    # Configuration
    configure_logging,
    get_run_context,
    # Context variables
    run_id_var,
    session_id_var,
    set_run_context,
    step_label_var,
    # Utilities
    timed_operation,
)

__all__ = [
    "ColoredFormatter",
    "ContextFilter",
    "JSONFormatter",
    "LoggingConfig",
    "clear_run_context",
    "configure_logging",
    "get_run_context",
    "run_id_var",
    "session_id_var",
    "set_run_context",
    "step_label_var",
    "timed_operation",
]
