"""Execution context shared by every step of a workflow run."""

import logging
import threading
import uuid
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..errors import MissingImplementationError, RuleExecutionError
from ..utils.rich_logging import ContextLogger, get_context_logger
from .registry import Rule, RuleRegistry, ValidationRule, default_registry

if TYPE_CHECKING:
    from ..workflow.repository import WorkflowRepository
    from .result import RuleEngineResult

logger = logging.getLogger(__name__)


class RulePipeline:
    """Execution context for one top-level workflow run.

    Holds the flow object the steps work on, the shared ``state`` map, the
    execution id, and the collaborators steps resolve through (registry,
    workflow repository, logger).

    ``state`` is shared by reference across the whole execution tree: sub-flows
    run on this same pipeline and foreach children are built with
    ``create_child``, which hands them this exact dict. Execution within a tree
    is sequential, so there is one writer at a time. Never reuse a pipeline (or
    pass the same ``state`` dict) across two top-level runs; build a fresh one
    per invocation.
    """

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        repository: Optional["WorkflowRepository"] = None,
        flow_object: Any = None,
        state: Optional[Dict[str, Any]] = None,
        context_logger: Optional[ContextLogger] = None,
        execution_id: Optional[str] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.repository = repository
        self.flow_object = flow_object
        self.state: Dict[str, Any] = state if state is not None else {}
        self.execution_id = execution_id or uuid.uuid4().hex
        self.logger = context_logger or get_context_logger("rule_pipeline.pipeline", self.execution_id)
        if self.logger.execution_id is None:
            self.logger.execution_id = self.execution_id
        self.parent: Optional["RulePipeline"] = None

    def create_child(self, flow_object: Any) -> "RulePipeline":
        """Derive a scope for one foreach item.

        The child owns its flow object; state, registry, repository, logger
        and execution id are the parent's.
        """
        child = RulePipeline(
            registry=self.registry,
            repository=self.repository,
            flow_object=flow_object,
            state=self.state,
            context_logger=self.logger,
            execution_id=self.execution_id,
        )
        child.parent = self
        return child

    @property
    def depth(self) -> int:
        """Number of foreach scopes above this one."""
        depth, node = 0, self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def set_flow_object(self, flow_object: Any) -> "RulePipeline":
        """Replace the flow object. Returns self for chaining."""
        if flow_object is None:
            raise ValueError("flow_object cannot be None")
        self.flow_object = flow_object
        return self

    def retrieve_rule(self, key: Optional[str]) -> Optional[Rule]:
        """Resolve a Rule by implementation key (None if not registered)."""
        self.logger.debug(f"Retrieving rule '{key}'")
        return self.registry.resolve_rule(key)

    def retrieve_validation_rule(self, key: Optional[str]) -> Optional[ValidationRule]:
        """Resolve a ValidationRule by implementation key (None if not registered)."""
        self.logger.debug(f"Retrieving validation rule '{key}'")
        return self.registry.resolve_validation_rule(key)

    def execute_rule(self, key: str, values: Optional[Dict[str, Any]] = None) -> "RulePipeline":
        """Run one registered rule directly, outside any workflow.

        Raises:
            MissingImplementationError: nothing registered under key
            RuleExecutionError: the rule raised
        """
        rule = self.retrieve_rule(key)
        if rule is None:
            raise MissingImplementationError("rule", key)
        try:
            rule.execute(self, values)
        except Exception as e:
            raise RuleExecutionError(key, e) from e
        return self

    def execute_policy(
        self,
        json_policy: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> "RuleEngineResult":
        """Run a workflow given as JSON text against this pipeline."""
        from ..workflow.executor import PolicyExecutor

        return PolicyExecutor(self).execute_policy(json_policy, cancel_event=cancel_event)

    def execute_workflow(
        self,
        workflow_name: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> "RuleEngineResult":
        """Load a workflow from the repository by name and run it."""
        from ..workflow.executor import PolicyExecutor

        return PolicyExecutor(self).execute_workflow(workflow_name, cancel_event=cancel_event)

    def __repr__(self) -> str:
        return (
            f"RulePipeline(execution_id={self.execution_id[:8]!r}, "
            f"flow_object={type(self.flow_object).__name__}, state_keys={sorted(self.state)!r})"
        )
