"""Declarative JSON rule/workflow engine."""

__version__ = "0.1.0"

from .core import (
    EngineConfig,
    RuleDefinition,
    RuleEngineResult,
    RulePipeline,
    RuleRegistry,
    Rule,
    ValidationRule,
    WorkflowConfiguration,
    default_registry,
    load_config,
    rule,
    validation_rule,
)
from .workflow import (
    ConditionEvaluator,
    FileWorkflowRepository,
    InMemoryWorkflowRepository,
    OperatorEngine,
    PolicyExecutor,
    WorkflowRepository,
    execute_policy,
    execute_workflow,
)

__all__ = [
    "__version__",
    "EngineConfig",
    "RuleDefinition",
    "RuleEngineResult",
    "RulePipeline",
    "RuleRegistry",
    "Rule",
    "ValidationRule",
    "WorkflowConfiguration",
    "default_registry",
    "load_config",
    "rule",
    "validation_rule",
    "ConditionEvaluator",
    "FileWorkflowRepository",
    "InMemoryWorkflowRepository",
    "OperatorEngine",
    "PolicyExecutor",
    "WorkflowRepository",
    "execute_policy",
    "execute_workflow",
]
