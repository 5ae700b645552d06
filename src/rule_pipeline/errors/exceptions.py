"""Exception hierarchy for the rule engine.

Configuration errors mean the workflow itself is broken (bad condition text,
unknown operator, unregistered implementation, missing sub-flow). They abort
the step that hit them. Validation failures are not exceptions at all; they
are recorded on the result by the executor.
"""

from typing import Optional


class RulePipelineError(Exception):
    """Base class for all rule engine errors."""


class ConfigurationError(RulePipelineError):
    """A workflow definition or its environment is misconfigured."""


class ConditionSyntaxError(ConfigurationError):
    """Condition text could not be parsed."""

    def __init__(self, condition: str, reason: str, position: Optional[int] = None):
        self.condition = condition
        self.reason = reason
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid Condition Syntax: {condition!r} ({reason}{where})")


class ConditionEvaluationError(ConfigurationError):
    """A compiled condition failed while being evaluated."""

    def __init__(self, condition: str, reason: str):
        self.condition = condition
        self.reason = reason
        super().__init__(f"Condition {condition!r} could not be evaluated: {reason}")


class UnsupportedOperatorError(ConfigurationError):
    """Declarative validation referenced an operator the engine does not know."""

    def __init__(self, operator: Optional[str]):
        self.operator = operator
        super().__init__(f"Operator '{operator}' is not supported")


class MissingImplementationError(ConfigurationError):
    """No rule or validation rule is registered under the requested key."""

    def __init__(self, kind: str, key: Optional[str], step: Optional[str] = None):
        self.kind = kind
        self.key = key
        self.step = step
        where = f" (step '{step}')" if step else ""
        super().__init__(f"No {kind} registered for implementation key '{key}'{where}")


class WorkflowDefinitionError(ConfigurationError):
    """Workflow JSON is malformed or violates the step schema."""


class WorkflowNotFoundError(ConfigurationError):
    """The workflow repository has no definition for a referenced name."""

    def __init__(self, name: Optional[str], kind: str = "Workflow"):
        self.name = name
        super().__init__(f"{kind} '{name}' not found.")


class RuleExecutionError(RulePipelineError):
    """A rule invoked directly through the pipeline raised."""

    def __init__(self, key: str, original: Exception):
        self.key = key
        self.original = original
        super().__init__(f"Error executing rule '{key}': {original}")
