"""Workflow interpreter: runs a workflow's steps against a pipeline."""

import logging
import threading
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.pipeline import RulePipeline

from ..core.config import (
    RuleDefinition,
    StepKind,
    StepMode,
    WorkflowConfiguration,
    parse_workflow,
    parse_workflow_cached,
)
from ..core.result import RuleEngineResult
from ..errors import (
    ConfigurationError,
    MissingImplementationError,
    WorkflowDefinitionError,
    WorkflowNotFoundError,
)
from .accessors import is_collection, try_get_field
from .conditions import ConditionEvaluator
from .operators import OperatorEngine
from .validation import DeclarativeValidationRule

logger = logging.getLogger(__name__)

# Hard ceiling on sub-flow/foreach nesting so a workflow that references
# itself fails with a clear error instead of exhausting the stack
MAX_NESTING_DEPTH = 32


class PolicyExecutor:
    """Executes workflow definitions against one pipeline.

    Steps run strictly in order. The first failing step (validation failure,
    failed sub-flow or loop item, or any exception) stops the scope it is in
    and every enclosing scope. ``execute_policy`` and ``execute_workflow``
    never raise; every problem ends up in the returned result.
    """

    def __init__(
        self,
        pipeline: "RulePipeline",
        condition_evaluator=ConditionEvaluator,
        operator_engine: Optional[OperatorEngine] = None,
        cache_definitions: bool = True,
    ):
        self.pipeline = pipeline
        self.condition_evaluator = condition_evaluator
        self.operator_engine = operator_engine or OperatorEngine()
        self.cache_definitions = cache_definitions
        self._depth = 0

    def execute_policy(
        self,
        json_text: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> RuleEngineResult:
        """Run a workflow given as JSON text."""
        try:
            workflow = self._parse(json_text)
        except WorkflowDefinitionError as e:
            self.pipeline.logger.error(f"Workflow definition rejected: {e}")
            return self._failed(str(e))
        except Exception as e:
            self.pipeline.logger.exception(f"Unexpected error parsing workflow definition: {e}")
            return self._failed(str(e))

        if workflow is None:
            return RuleEngineResult()

        try:
            return self._run(self.pipeline, workflow, cancel_event)
        except Exception as e:
            self.pipeline.logger.exception(f"Unexpected error running '{workflow.workflow_name}'")
            return self._failed(str(e))

    def execute_workflow(
        self,
        name: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> RuleEngineResult:
        """Load a workflow from the pipeline's repository and run it."""
        try:
            json_text = self._load(self.pipeline, name, "Workflow")
        except (ConfigurationError, ValueError, OSError) as e:
            self.pipeline.logger.error(f"Could not load workflow '{name}': {e}")
            return self._failed(str(e))
        except Exception as e:
            self.pipeline.logger.exception(f"Repository failed loading workflow '{name}': {e}")
            return self._failed(str(e))
        return self.execute_policy(json_text, cancel_event=cancel_event)

    def _failed(self, message: str) -> RuleEngineResult:
        result = RuleEngineResult(
            final_flow_object=self.pipeline.flow_object,
            output_values=dict(self.pipeline.state),
        )
        result.fail(message)
        return result

    def _parse(self, json_text: str) -> Optional[WorkflowConfiguration]:
        if self.cache_definitions:
            return parse_workflow_cached(json_text)
        return parse_workflow(json_text)

    def _load(self, pipeline: "RulePipeline", name: Optional[str], kind: str) -> str:
        repository = pipeline.repository
        if repository is None:
            raise ConfigurationError(f"No workflow repository configured to load {kind} '{name}'")
        json_text = repository.get_workflow_config(name)
        if not json_text or not json_text.strip():
            raise WorkflowNotFoundError(name, kind)
        return json_text

    def _run(
        self,
        pipeline: "RulePipeline",
        workflow: WorkflowConfiguration,
        cancel_event: Optional[threading.Event],
    ) -> RuleEngineResult:
        result = RuleEngineResult()
        log = pipeline.logger
        scope = workflow.workflow_name
        previous_scope = log.scope_started(scope)

        for step in workflow.rules:
            if cancel_event is not None and cancel_event.is_set():
                log.info(f"Cancellation requested, stopping '{scope}'")
                break

            label = step.display_name
            try:
                if step.has_condition and not self.condition_evaluator.evaluate(step.condition, pipeline):
                    log.step_skipped(label, step.condition)
                    continue

                log.step_started(label, step.kind.value)
                self._dispatch(pipeline, step, result, cancel_event)
            except Exception as e:
                log.exception(f"Error in {label}: {e}")
                result.fail(str(e))

            if not result.is_success:
                break

        log.scope_ended(scope, result.is_success, previous_scope)

        result.final_flow_object = pipeline.flow_object
        result.output_values = dict(pipeline.state)
        return result

    def _dispatch(
        self,
        pipeline: "RulePipeline",
        step: RuleDefinition,
        result: RuleEngineResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        if step.kind == StepKind.RULE:
            self._run_rule(pipeline, step)
        elif step.kind == StepKind.VALIDATION:
            self._run_validation(pipeline, step, result)
        elif step.kind == StepKind.SUBFLOW:
            self._run_subflow(pipeline, step, result, cancel_event)
        elif step.kind == StepKind.FOREACH:
            self._run_foreach(pipeline, step, result, cancel_event)

    def _run_rule(self, pipeline: "RulePipeline", step: RuleDefinition) -> None:
        rule = pipeline.retrieve_rule(step.implementation_key)
        if rule is None:
            raise MissingImplementationError("rule", step.implementation_key, step.display_name)
        rule.execute(pipeline, None)

    def _run_validation(self, pipeline: "RulePipeline", step: RuleDefinition, result: RuleEngineResult) -> None:
        if step.mode == StepMode.SIMPLE:
            handler = DeclarativeValidationRule(step, self.operator_engine)
        else:
            handler = pipeline.retrieve_validation_rule(step.implementation_key)
            if handler is None:
                raise MissingImplementationError(
                    "validation rule", step.implementation_key, step.display_name
                )

        # Never invoking the callback counts as valid
        outcome = {"valid": True}

        def on_complete(valid: bool) -> None:
            outcome["valid"] = bool(valid)

        handler.execute(pipeline, None, on_complete)

        if not outcome["valid"]:
            message = step.error_message or f"Validation failed in {step.display_name}"
            pipeline.logger.step_failed(step.display_name, message)
            result.fail(message)

    def _enter_nested(self, ref: str) -> None:
        if self._depth >= MAX_NESTING_DEPTH:
            raise WorkflowDefinitionError(
                f"Sub-flow nesting exceeds {MAX_NESTING_DEPTH} levels at '{ref}'"
            )
        self._depth += 1

    def _run_subflow(
        self,
        pipeline: "RulePipeline",
        step: RuleDefinition,
        result: RuleEngineResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        ref = step.sub_flow_ref
        workflow = self._parse(self._load(pipeline, ref, "SubFlow"))

        pipeline.logger.subflow_entered(ref)
        if workflow is not None:
            self._enter_nested(ref)
            try:
                # Same pipeline: the sub-flow sees and changes the caller's flow object and state
                sub_result = self._run(pipeline, workflow, cancel_event)
            finally:
                self._depth -= 1

            if not sub_result.is_success:
                result.is_success = False
                result.errors.extend(sub_result.errors)
                pipeline.logger.warning(f"SubFlow '{ref}' failed. Stopping parent flow.")
        pipeline.logger.subflow_exited(ref)

    def _run_foreach(
        self,
        pipeline: "RulePipeline",
        step: RuleDefinition,
        result: RuleEngineResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        prop = step.collection_property
        flow = pipeline.flow_object
        if flow is None:
            result.fail(f"Collection property '{prop}' cannot be read: there is no flow object.")
            return

        found, collection = try_get_field(flow, prop)
        if not found:
            result.fail(f"Collection property '{prop}' not found on {type(flow).__name__}")
            return
        if not is_collection(collection):
            result.fail(f"Property '{prop}' is not a collection.")
            return

        ref = step.sub_flow_ref
        workflow = self._parse(self._load(pipeline, ref, "SubFlow"))

        label = step.display_name
        items = list(collection)
        pipeline.logger.loop_started(label, len(items))

        if workflow is not None:
            self._enter_nested(ref)
            try:
                for index, item in enumerate(items):
                    if cancel_event is not None and cancel_event.is_set():
                        pipeline.logger.info(f"Cancellation requested, stopping loop '{label}' at index {index}")
                        break

                    child = pipeline.create_child(item)
                    child_result = self._run(child, workflow, cancel_event)

                    if not child_result.is_success:
                        pipeline.logger.warning(f"Loop Item #{index} Failed.")
                        result.fail(
                            f"Failure in loop '{label}' at index {index}: {', '.join(child_result.errors)}"
                        )
                        break
            finally:
                self._depth -= 1

        pipeline.logger.loop_ended(label)


def execute_policy(
    pipeline: "RulePipeline",
    json_text: str,
    cancel_event: Optional[threading.Event] = None,
) -> RuleEngineResult:
    """Run a workflow given as JSON text against pipeline."""
    return PolicyExecutor(pipeline).execute_policy(json_text, cancel_event=cancel_event)


def execute_workflow(
    pipeline: "RulePipeline",
    name: str,
    cancel_event: Optional[threading.Event] = None,
) -> RuleEngineResult:
    """Load a workflow by name from the pipeline's repository and run it."""
    return PolicyExecutor(pipeline).execute_workflow(name, cancel_event=cancel_event)
