"""Rule handler contracts and the registry that resolves them by key."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .pipeline import RulePipeline

from ..utils.validators import validate_implementation_key

logger = logging.getLogger(__name__)

ValidationCallback = Callable[[bool], None]


class Rule(ABC):
    """A business rule step.

    Rules inspect or mutate ``pipeline.flow_object`` and may publish values
    for later steps through ``pipeline.state``. Raising aborts the run.
    """

    @abstractmethod
    def execute(self, pipeline: "RulePipeline", values: Optional[Dict[str, Any]] = None) -> None:
        """Run the rule against the pipeline."""
        pass


class ValidationRule(ABC):
    """A validation step.

    Report the outcome through ``on_validation_complete``; calling it with
    False stops the workflow. Not calling it at all counts as valid.
    """

    @abstractmethod
    def execute(
        self,
        pipeline: "RulePipeline",
        values: Optional[Dict[str, Any]] = None,
        on_validation_complete: Optional[ValidationCallback] = None,
    ) -> None:
        """Validate the pipeline's flow object."""
        pass


class FunctionRule(Rule):
    """Adapts a plain ``fn(pipeline, values)`` callable to Rule."""

    def __init__(self, func: Callable[["RulePipeline", Optional[Dict[str, Any]]], None]):
        self.func = func

    def execute(self, pipeline, values=None) -> None:
        self.func(pipeline, values)

    def __repr__(self) -> str:
        return f"FunctionRule({getattr(self.func, '__name__', self.func)!r})"


class PredicateValidationRule(ValidationRule):
    """Adapts a ``fn(pipeline) -> bool`` predicate to ValidationRule."""

    def __init__(self, predicate: Callable[["RulePipeline"], bool]):
        self.predicate = predicate

    def execute(self, pipeline, values=None, on_validation_complete=None) -> None:
        outcome = bool(self.predicate(pipeline))
        if on_validation_complete:
            on_validation_complete(outcome)

    def __repr__(self) -> str:
        return f"PredicateValidationRule({getattr(self.predicate, '__name__', self.predicate)!r})"


# An entry is either a ready instance or a zero-arg factory (class or function)
RuleEntry = Union[Rule, Callable[[], Rule]]
ValidationRuleEntry = Union[ValidationRule, Callable[[], ValidationRule]]


class RuleRegistry:
    """Maps implementation keys to rule and validation-rule handlers.

    Populated at startup (directly, via the ``rule``/``validation_rule``
    decorators, or by plugins) and read during execution. Registration is
    lock-guarded so plugins may register from any thread.
    """

    def __init__(self):
        self._rules: Dict[str, RuleEntry] = {}
        self._validation_rules: Dict[str, ValidationRuleEntry] = {}
        self._lock = threading.Lock()

    def register_rule(self, key: str, handler: RuleEntry) -> None:
        """Register a Rule instance or factory under key."""
        validate_implementation_key(key)
        with self._lock:
            if key in self._rules:
                logger.warning(f"Rule '{key}' re-registered, replacing {self._rules[key]!r}")
            self._rules[key] = handler

    def register_validation_rule(self, key: str, handler: ValidationRuleEntry) -> None:
        """Register a ValidationRule instance or factory under key."""
        validate_implementation_key(key)
        with self._lock:
            if key in self._validation_rules:
                logger.warning(
                    f"Validation rule '{key}' re-registered, replacing {self._validation_rules[key]!r}"
                )
            self._validation_rules[key] = handler

    def rule(self, key: str):
        """Decorator registering a Rule class or a ``fn(pipeline, values)`` function."""
        def decorator(target):
            if isinstance(target, type):
                self.register_rule(key, target)
            else:
                self.register_rule(key, FunctionRule(target))
            return target
        return decorator

    def validation_rule(self, key: str):
        """Decorator registering a ValidationRule class or a ``fn(pipeline) -> bool`` predicate."""
        def decorator(target):
            if isinstance(target, type):
                self.register_validation_rule(key, target)
            else:
                self.register_validation_rule(key, PredicateValidationRule(target))
            return target
        return decorator

    def resolve_rule(self, key: Optional[str]) -> Optional[Rule]:
        """Return the Rule for key, or None if nothing is registered."""
        if not key:
            return None
        with self._lock:
            entry = self._rules.get(key)
        if entry is None:
            return None
        return entry if isinstance(entry, Rule) else entry()

    def resolve_validation_rule(self, key: Optional[str]) -> Optional[ValidationRule]:
        """Return the ValidationRule for key, or None if nothing is registered."""
        if not key:
            return None
        with self._lock:
            entry = self._validation_rules.get(key)
        if entry is None:
            return None
        return entry if isinstance(entry, ValidationRule) else entry()

    def has_rule(self, key: str) -> bool:
        with self._lock:
            return key in self._rules

    def has_validation_rule(self, key: str) -> bool:
        with self._lock:
            return key in self._validation_rules

    def rule_keys(self):
        with self._lock:
            return sorted(self._rules)

    def validation_rule_keys(self):
        with self._lock:
            return sorted(self._validation_rules)

    def clear(self) -> None:
        """Remove every registration (useful in tests)."""
        with self._lock:
            self._rules.clear()
            self._validation_rules.clear()


# Process-wide registry used by the module-level decorators and the CLI
default_registry = RuleRegistry()


def rule(key: str, registry: Optional[RuleRegistry] = None):
    """Register a rule on ``registry`` (default: the process-wide registry)."""
    return (registry or default_registry).rule(key)


def validation_rule(key: str, registry: Optional[RuleRegistry] = None):
    """Register a validation rule on ``registry`` (default: the process-wide registry)."""
    return (registry or default_registry).validation_rule(key)
