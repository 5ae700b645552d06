"""Configuration loading and workflow schema validation."""

import json
import logging
import os
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import WorkflowDefinitionError

logger = logging.getLogger(__name__)


class StepKind(str, Enum):
    """What a workflow step does."""
    RULE = "Rule"
    VALIDATION = "Validation"
    SUBFLOW = "SubFlow"
    FOREACH = "Foreach"

    @classmethod
    def _missing_(cls, value):
        # Authors write "subflow", "FOREACH", ...
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class StepMode(str, Enum):
    """How a Validation step is evaluated."""
    SIMPLE = "Simple"  # Declarative operator check against targetProperty
    COMPLEX = "Complex"  # Registered ValidationRule

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class RuleDefinition(BaseModel):
    """A single step of a workflow.

    One schema serves all four step kinds; fields a kind doesn't use are
    ignored. JSON names are camelCase; the snake_case attribute names are
    accepted as well.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    kind: StepKind = Field(
        default=StepKind.RULE,
        validation_alias=AliasChoices("kind", "type"),
    )
    mode: StepMode = StepMode.COMPLEX
    implementation_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("implementationKey", "implementationType", "implementation_key"),
    )
    sub_flow_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("subFlowRef", "sub_flow_ref"),
    )
    target_property: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("targetProperty", "target_property"),
    )
    operator: Optional[str] = None
    target_value: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("targetValue", "target_value"),
    )
    error_message: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("errorMessage", "error_message"),
    )
    condition: Optional[str] = None
    collection_property: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("collectionProperty", "collection_property"),
    )

    @field_validator("kind", "mode", mode="before")
    @classmethod
    def default_blank_enum(cls, v: Any, info) -> Any:
        """Treat null/blank kind or mode like an omitted field."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return StepKind.RULE if info.field_name == "kind" else StepMode.COMPLEX
        return v

    @field_validator("target_value", mode="before")
    @classmethod
    def stringify_target_value(cls, v: Any) -> Any:
        """JSON authors write numbers and booleans unquoted."""
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (int, float, Decimal)):
            return str(v)
        if isinstance(v, (list, tuple)):
            return ",".join(str(item) for item in v)
        return v

    @model_validator(mode="after")
    def validate_kind_requirements(self) -> "RuleDefinition":
        """Check the fields each step kind depends on."""
        label = self.name or self.kind.value
        if self.kind in (StepKind.SUBFLOW, StepKind.FOREACH) and not (self.sub_flow_ref or "").strip():
            raise ValueError(f"{self.kind.value} step '{label}' requires 'subFlowRef'")

        if self.kind == StepKind.FOREACH and not (self.collection_property or "").strip():
            raise ValueError(f"Foreach step '{label}' requires 'collectionProperty'")

        if self.kind == StepKind.VALIDATION and self.mode == StepMode.SIMPLE:
            if not (self.target_property or "").strip():
                raise ValueError(f"Simple validation '{label}' requires 'targetProperty'")
            if not (self.operator or "").strip():
                raise ValueError(f"Simple validation '{label}' requires 'operator'")

        return self

    @property
    def display_name(self) -> str:
        """Best available label for logs and default error messages."""
        return self.name or self.implementation_key or self.sub_flow_ref or self.kind.value

    @property
    def has_condition(self) -> bool:
        return bool(self.condition and self.condition.strip())


class WorkflowConfiguration(BaseModel):
    """A named, ordered list of rule steps."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    workflow_name: str = Field(
        default="",
        validation_alias=AliasChoices("workflowName", "workflow_name"),
    )
    rules: Tuple[RuleDefinition, ...] = ()

    @field_validator("workflow_name", mode="before")
    @classmethod
    def default_blank_name(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("rules", mode="before")
    @classmethod
    def default_missing_rules(cls, v: Any) -> Any:
        return () if v is None else v

    def iter_conditions(self) -> List[Tuple[RuleDefinition, str]]:
        """(step, condition) pairs for every step that has a condition."""
        return [(rule, rule.condition) for rule in self.rules if rule.has_condition]

    def referenced_workflows(self) -> List[str]:
        """Sub-flow names referenced by SubFlow and Foreach steps, in order."""
        refs: List[str] = []
        for rule in self.rules:
            if rule.kind in (StepKind.SUBFLOW, StepKind.FOREACH) and rule.sub_flow_ref not in refs:
                refs.append(rule.sub_flow_ref)
        return refs


def parse_workflow(json_text: str) -> Optional[WorkflowConfiguration]:
    """Parse workflow JSON into a WorkflowConfiguration.

    Returns None when the document is the JSON literal ``null``.

    Raises:
        WorkflowDefinitionError: text is not JSON, not an object, or a step
            violates the schema
    """
    if json_text is None or not str(json_text).strip():
        raise WorkflowDefinitionError("Workflow definition is empty")

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise WorkflowDefinitionError(f"Workflow definition is not valid JSON: {e}") from e
    except RecursionError as e:
        raise WorkflowDefinitionError("Workflow definition is nested too deeply to parse") from e

    if data is None:
        return None
    if not isinstance(data, dict):
        raise WorkflowDefinitionError(
            f"Workflow definition must be a JSON object, got {type(data).__name__}"
        )

    try:
        return WorkflowConfiguration.model_validate(data)
    except ValidationError as e:
        name = data.get("workflowName") or data.get("workflow_name") or "<unnamed>"
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'workflow'}: {err['msg']}"
            for err in e.errors()
        )
        raise WorkflowDefinitionError(f"Invalid workflow '{name}': {problems}") from e


@lru_cache(maxsize=256)
def parse_workflow_cached(json_text: str) -> Optional[WorkflowConfiguration]:
    """parse_workflow memoized on the exact definition text.

    Safe to share: parsed workflows are frozen.
    """
    return parse_workflow(json_text)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    use_file: bool = False
    use_json: bool = False
    log_dir: Path = Field(default=Path("logs"))

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"level must be a standard logging level name, got '{v}'")
        return level


class EngineConfig(BaseSettings):
    """Main engine configuration."""
    model_config = SettingsConfigDict(env_prefix="RULE_PIPELINE_", env_file=".env", extra="allow")

    workflows_dir: Path = Field(default=Path("workflows"))
    cache_definitions: bool = True
    # Modules exposing register(registry), imported at startup
    plugins: List[str] = Field(default_factory=list)
    log: LoggingConfig = Field(default_factory=LoggingConfig)


# Module-level mtime-based config cache: path -> (parsed_config, file_mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def _load_config_from_file(config_path: Path) -> EngineConfig:
    """Internal loader for engine config (no caching)."""
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    data = _expand_env_vars(data)
    config = EngineConfig(**data)

    # Relative workflows_dir is relative to the config file, not the cwd
    if not config.workflows_dir.is_absolute():
        config.workflows_dir = config_path.parent / config.workflows_dir

    return config


def load_config(config_path: Path = Path("rule-pipeline.yaml")) -> EngineConfig:
    """Load engine configuration from YAML file.

    Uses mtime-based caching: returns cached config if the file hasn't changed.
    """
    if not config_path.exists():
        logger.warning(
            f"Config file not found: {config_path}. Using default configuration. "
            "To customize settings, create a config file at this path."
        )
        return EngineConfig()

    resolved = config_path.resolve()
    result = _get_cached_or_load(resolved, _load_config_from_file)
    return result if result is not None else EngineConfig()


def clear_config_cache() -> None:
    """Clear the module-level config and definition caches. Useful for tests."""
    _config_cache.clear()
    parse_workflow_cached.cache_clear()


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand environment variables in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "log.level")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used, which may cause errors."
            )
            return data
        return value
    return data
