"""Workflow definition sources."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ..utils.validators import validate_workflow_name

logger = logging.getLogger(__name__)


class WorkflowRepository(ABC):
    """Looks up workflow definition text by name."""

    @abstractmethod
    def get_workflow_config(self, name: str) -> Optional[str]:
        """Return the JSON definition for name, or None if there is none."""
        pass

    def list_workflows(self) -> List[str]:
        """Names this repository can serve (empty when it can't enumerate)."""
        return []


class FileWorkflowRepository(WorkflowRepository):
    """Reads ``<base_path>/<name>.json``.

    Names may contain ``/`` to address sub-directories but are validated so
    they can't escape base_path.
    """

    SUFFIX = ".json"

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)

    def _path_for(self, name: str) -> Path:
        validate_workflow_name(name)
        return self.base_path / f"{name}{self.SUFFIX}"

    def get_workflow_config(self, name: str) -> Optional[str]:
        """
        Raises:
            ValueError: name is not a valid workflow name
        """
        path = self._path_for(name)
        if not path.is_file():
            logger.debug(f"Workflow file not found: {path}")
            return None
        return path.read_text(encoding="utf-8")

    def list_workflows(self) -> List[str]:
        if not self.base_path.is_dir():
            return []
        names = []
        for path in sorted(self.base_path.rglob(f"*{self.SUFFIX}")):
            relative = path.relative_to(self.base_path).with_suffix("")
            names.append(relative.as_posix())
        return names

    def __repr__(self) -> str:
        return f"FileWorkflowRepository({str(self.base_path)!r})"


class InMemoryWorkflowRepository(WorkflowRepository):
    """Definitions held in memory, for tests and embedding.

    Values may be JSON text or plain dicts; dicts are serialised on insert.
    """

    def __init__(self, workflows: Optional[Mapping[str, Union[str, Dict[str, Any]]]] = None):
        self._workflows: Dict[str, str] = {}
        self._lock = threading.Lock()
        for name, definition in (workflows or {}).items():
            self.add(name, definition)

    def add(self, name: str, definition: Union[str, Dict[str, Any]]) -> None:
        text = definition if isinstance(definition, str) else json.dumps(definition)
        with self._lock:
            self._workflows[name] = text

    def get_workflow_config(self, name: str) -> Optional[str]:
        with self._lock:
            return self._workflows.get(name)

    def list_workflows(self) -> List[str]:
        with self._lock:
            return sorted(self._workflows)
