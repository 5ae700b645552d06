"""Structured outcome of a workflow run."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class RuleEngineResult:
    """Result of executing one workflow scope.

    A fresh result is built for every scope, nested sub-flow and foreach item
    runs included. ``output_values`` is a snapshot of the shared state map at
    the end of the scope, so later writes to the map don't leak into it.
    """
    is_success: bool = True
    errors: List[str] = field(default_factory=list)
    final_flow_object: Optional[Any] = None
    output_values: Dict[str, Any] = field(default_factory=dict)

    def fail(self, message: str) -> None:
        """Record an error and mark the run as failed."""
        self.is_success = False
        self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_success": self.is_success,
            "errors": list(self.errors),
            "final_flow_object": self.final_flow_object,
            "output_values": dict(self.output_values),
        }
