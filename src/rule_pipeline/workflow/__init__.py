"""Workflow interpretation: conditions, operators, repositories, executor."""

from .accessors import declared_type, get_field, is_collection, try_get_field
from .conditions import ConditionEvaluator
from .executor import PolicyExecutor, execute_policy, execute_workflow
from .expressions import CompiledCondition, compile_expression
from .operators import OperatorEngine
from .repository import (
    FileWorkflowRepository,
    InMemoryWorkflowRepository,
    WorkflowRepository,
)
from .validation import DeclarativeValidationRule

__all__ = [
    "declared_type",
    "get_field",
    "is_collection",
    "try_get_field",
    "ConditionEvaluator",
    "PolicyExecutor",
    "execute_policy",
    "execute_workflow",
    "CompiledCondition",
    "compile_expression",
    "OperatorEngine",
    "FileWorkflowRepository",
    "InMemoryWorkflowRepository",
    "WorkflowRepository",
    "DeclarativeValidationRule",
]
