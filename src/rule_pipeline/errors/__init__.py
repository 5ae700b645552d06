"""Rule engine exceptions and user-facing error translation."""

from .exceptions import (
    ConditionEvaluationError,
    ConditionSyntaxError,
    ConfigurationError,
    MissingImplementationError,
    RuleExecutionError,
    RulePipelineError,
    UnsupportedOperatorError,
    WorkflowDefinitionError,
    WorkflowNotFoundError,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "RulePipelineError",
    "ConfigurationError",
    "ConditionSyntaxError",
    "ConditionEvaluationError",
    "UnsupportedOperatorError",
    "MissingImplementationError",
    "WorkflowDefinitionError",
    "WorkflowNotFoundError",
    "RuleExecutionError",
    "ErrorTranslator",
    "UserFriendlyError",
]
