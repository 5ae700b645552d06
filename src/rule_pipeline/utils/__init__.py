"""Shared utility functions for the rule engine."""

from .error_handling import (
    log_and_ignore,
    safe_call,
    ErrorContext,
)
from .rich_logging import (
    ContextLogger,
    PipelineLogFormatter,
    get_context_logger,
    setup_rich_logging,
)
from .validators import validate_implementation_key, validate_workflow_name

__all__ = [
    # Error handling
    "log_and_ignore",
    "safe_call",
    "ErrorContext",
    # Logging
    "ContextLogger",
    "PipelineLogFormatter",
    "get_context_logger",
    "setup_rich_logging",
    # Validators
    "validate_implementation_key",
    "validate_workflow_name",
]
