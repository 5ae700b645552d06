"""Command line interface for rule-pipeline."""

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import click
import yaml
from rich.console import Console
from rich.table import Table

from ..core.config import EngineConfig, StepKind, StepMode, load_config, parse_workflow
from ..core.pipeline import RulePipeline
from ..core.registry import RuleRegistry, default_registry
from ..errors import ErrorTranslator, RulePipelineError
from ..utils.error_handling import ErrorContext
from ..utils.rich_logging import setup_rich_logging
from ..workflow.conditions import ConditionEvaluator
from ..workflow.executor import PolicyExecutor
from ..workflow.operators import OperatorEngine
from ..workflow.repository import FileWorkflowRepository

logger = logging.getLogger(__name__)

console = Console()


def _load_plugins(registry: RuleRegistry, modules: Iterable[str]) -> None:
    """Import plugin modules and let them register their rules."""
    for name in dict.fromkeys(modules):
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            raise click.ClickException(f"Could not import plugin '{name}': {e}")

        register = getattr(module, "register", None)
        if callable(register):
            register(registry)
            logger.debug(f"Plugin '{name}' registered its rules")
        else:
            # Module may register through the @rule decorators at import time
            logger.debug(f"Plugin '{name}' has no register(registry), relying on import-time registration")


def _parse_state(pairs: Iterable[str]) -> Dict[str, Any]:
    """KEY=VALUE pairs; values are read as YAML scalars so 3 is an int and true a bool."""
    state: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="--state")
        state[key.strip()] = yaml.safe_load(raw) if raw.strip() else ""
    return state


def _read_flow_object(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def _print_error(error: Exception) -> None:
    translator = ErrorTranslator()
    console.print(translator.format_for_cli(translator.translate(error)))


@click.group()
@click.option("--config", "-c", default="rule-pipeline.yaml", help="Engine config file")
@click.option("--workflows-dir", "-w", default=None, help="Directory holding workflow JSON files")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx, config, workflows_dir, log_level):
    """Rule Pipeline - run declarative JSON workflows against your objects."""
    ctx.ensure_object(dict)

    engine_config = load_config(Path(config))
    updates = {}
    if workflows_dir:
        updates["workflows_dir"] = Path(workflows_dir)
    if log_level:
        updates["log"] = engine_config.log.model_copy(update={"level": log_level.upper()})
    if updates:
        # load_config hands out a cached instance; don't mutate it
        engine_config = engine_config.model_copy(update=updates)

    setup_rich_logging(
        log_dir=engine_config.log.log_dir,
        log_level=engine_config.log.level,
        use_file=engine_config.log.use_file,
        use_json=engine_config.log.use_json,
    )
    ctx.obj["config"] = engine_config


@cli.command()
@click.argument("workflow")
@click.option(
    "--flow-object", "-f",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML file loaded as the flow object",
)
@click.option("--state", "-s", multiple=True, help="Initial state entry KEY=VALUE (repeatable)")
@click.option("--plugin", "-p", multiple=True, help="Module that registers rules (repeatable)")
@click.pass_context
def run(ctx, workflow, flow_object, state, plugin):
    """Run WORKFLOW from the workflows directory."""
    config: EngineConfig = ctx.obj["config"]
    _load_plugins(default_registry, list(config.plugins) + list(plugin))
    initial_state = _parse_state(state)

    flow = None
    if flow_object:
        with ErrorContext(f"reading flow object {flow_object}", raise_on_error=False, logger_instance=logger) as ectx:
            flow = _read_flow_object(flow_object)
        if ectx.error is not None:
            console.print(f"[red]Error: could not read flow object {flow_object}: {ectx.error}[/]")
            ctx.exit(1)
        flow = ectx.get_result(flow)

    pipeline = RulePipeline(
        registry=default_registry,
        repository=FileWorkflowRepository(config.workflows_dir),
        flow_object=flow,
        state=initial_state,
    )
    executor = PolicyExecutor(pipeline, cache_definitions=config.cache_definitions)

    console.print(f"[bold]Running workflow: {workflow}[/] [dim](execution {pipeline.execution_id[:8]})[/]")
    result = executor.execute_workflow(workflow)

    if result.output_values:
        table = Table(title="Output values")
        table.add_column("Key")
        table.add_column("Value")
        for key, value in sorted(result.output_values.items()):
            table.add_row(str(key), repr(value))
        console.print(table)

    if result.is_success:
        console.print("[green]✓ Workflow completed successfully[/]")
        return

    table = Table(title="Errors")
    table.add_column("#", justify="right")
    table.add_column("Error", style="red")
    for i, error in enumerate(result.errors, 1):
        table.add_row(str(i), error)
    console.print(table)
    console.print("[red]✗ Workflow failed[/]")
    ctx.exit(1)


def check_workflow(
    name: str,
    repository: FileWorkflowRepository,
    registry: RuleRegistry,
    engine: OperatorEngine,
) -> List[Tuple[str, str, str]]:
    """Statically check a workflow and every sub-flow it reaches.

    Returns (workflow, step, problem) rows; empty when everything resolves.
    """
    problems: List[Tuple[str, str, str]] = []
    pending = [name]
    seen = set()

    while pending:
        current = pending.pop(0)
        if current in seen:
            continue
        seen.add(current)

        try:
            text = repository.get_workflow_config(current)
        except ValueError as e:
            problems.append((current, "-", str(e)))
            continue
        if not text:
            problems.append((current, "-", "workflow not found"))
            continue

        try:
            workflow = parse_workflow(text)
        except RulePipelineError as e:
            problems.append((current, "-", str(e)))
            continue
        if workflow is None:
            continue

        for step, condition in workflow.iter_conditions():
            try:
                ConditionEvaluator.compile(condition)
            except RulePipelineError as e:
                problems.append((current, step.display_name, str(e)))

        for step in workflow.rules:
            label = step.display_name
            if step.kind == StepKind.RULE and not registry.has_rule(step.implementation_key or ""):
                problems.append((current, label, f"no rule registered as '{step.implementation_key}'"))
            elif step.kind == StepKind.VALIDATION:
                if step.mode == StepMode.SIMPLE and not engine.supports(step.operator):
                    problems.append((current, label, f"unsupported operator '{step.operator}'"))
                elif step.mode == StepMode.COMPLEX and not registry.has_validation_rule(step.implementation_key or ""):
                    problems.append(
                        (current, label, f"no validation rule registered as '{step.implementation_key}'")
                    )

        pending.extend(workflow.referenced_workflows())

    return problems


@cli.command()
@click.argument("workflow")
@click.option("--plugin", "-p", multiple=True, help="Module that registers rules (repeatable)")
@click.pass_context
def check(ctx, workflow, plugin):
    """Validate WORKFLOW and its sub-flows without running them."""
    config: EngineConfig = ctx.obj["config"]
    _load_plugins(default_registry, list(config.plugins) + list(plugin))

    repository = FileWorkflowRepository(config.workflows_dir)
    problems = check_workflow(workflow, repository, default_registry, OperatorEngine())

    if not problems:
        console.print(f"[green]✓ {workflow} is valid[/]")
        return

    table = Table(title=f"Problems in {workflow}")
    table.add_column("Workflow")
    table.add_column("Step")
    table.add_column("Problem", style="red")
    for row in problems:
        table.add_row(*row)
    console.print(table)
    ctx.exit(1)


@cli.command(name="list")
@click.pass_context
def list_workflows(ctx):
    """List workflows in the workflows directory."""
    config: EngineConfig = ctx.obj["config"]
    repository = FileWorkflowRepository(config.workflows_dir)
    names = repository.list_workflows()

    if not names:
        console.print(f"[yellow]No workflows found in {config.workflows_dir}[/]")
        return

    table = Table()
    table.add_column("Workflow")
    table.add_column("Steps", justify="right")
    for name in names:
        try:
            workflow = parse_workflow(repository.get_workflow_config(name))
            steps = str(len(workflow.rules)) if workflow else "0"
        except RulePipelineError as e:
            _print_error(e)
            steps = "[red]invalid[/]"
        table.add_row(name, steps)
    console.print(table)


if __name__ == "__main__":
    cli()
