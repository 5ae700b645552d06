"""Declarative validation handler for Simple validation steps."""

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.pipeline import RulePipeline

from ..core.config import RuleDefinition
from ..core.registry import ValidationCallback, ValidationRule
from .accessors import declared_type, try_get_field
from .operators import OperatorEngine

logger = logging.getLogger(__name__)


class DeclarativeValidationRule(ValidationRule):
    """Checks ``flow.<targetProperty> <operator> <targetValue>`` for one step.

    Fails (reports False) when there is no flow object or the property is
    missing. The comparison type is the property's declared type when the
    flow object's class annotates it, else the runtime type of the value.
    """

    def __init__(self, definition: RuleDefinition, engine: Optional[OperatorEngine] = None):
        self.definition = definition
        self.engine = engine or OperatorEngine()

    def execute(
        self,
        pipeline: "RulePipeline",
        values: Optional[Dict[str, Any]] = None,
        on_validation_complete: Optional[ValidationCallback] = None,
    ) -> None:
        outcome = self.validate(pipeline)
        if on_validation_complete:
            on_validation_complete(outcome)

    def validate(self, pipeline: "RulePipeline") -> bool:
        """Return the outcome instead of reporting it through a callback.

        Raises:
            UnsupportedOperatorError: the step names an unknown operator
        """
        flow = pipeline.flow_object
        prop = self.definition.target_property or ""
        if flow is None:
            pipeline.logger.warning(f"No flow object to validate '{prop}' against")
            return False

        found, actual = try_get_field(flow, prop)
        if not found:
            pipeline.logger.error(f"Property {prop} missing on {type(flow).__name__}")
            return False

        target_type = declared_type(flow, prop)
        if target_type is None and actual is not None:
            target_type = type(actual)

        return self.engine.check(actual, self.definition.operator, self.definition.target_value, target_type)

    def __repr__(self) -> str:
        d = self.definition
        return f"DeclarativeValidationRule({d.target_property!r} {d.operator} {d.target_value!r})"
