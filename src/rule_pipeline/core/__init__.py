"""Core models: schema, configuration, registry, execution context, result."""

from .config import (
    EngineConfig,
    RuleDefinition,
    StepKind,
    StepMode,
    WorkflowConfiguration,
    load_config,
    parse_workflow,
)
from .pipeline import RulePipeline
from .registry import (
    Rule,
    RuleRegistry,
    ValidationRule,
    default_registry,
    rule,
    validation_rule,
)
from .result import RuleEngineResult

__all__ = [
    "EngineConfig",
    "RuleDefinition",
    "StepKind",
    "StepMode",
    "WorkflowConfiguration",
    "load_config",
    "parse_workflow",
    "RulePipeline",
    "Rule",
    "RuleRegistry",
    "ValidationRule",
    "default_registry",
    "rule",
    "validation_rule",
    "RuleEngineResult",
]
