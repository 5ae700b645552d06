"""Condition evaluation for workflow steps with a process-wide compile cache."""

import logging
import threading
from typing import Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.pipeline import RulePipeline

from .expressions import CompiledCondition, compile_expression

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """Evaluates step conditions against a pipeline.

    Compiled conditions are cached by their exact text for the life of the
    process. Lookups and inserts happen under the lock; compiling happens
    outside it, and when two threads compile the same text the first insert
    wins.
    """

    _cache: Dict[str, CompiledCondition] = {}
    _lock = threading.Lock()
    _hits = 0
    _misses = 0

    @classmethod
    def evaluate(cls, condition: str, pipeline: "RulePipeline") -> bool:
        """True when the condition holds. Blank conditions always hold.

        Raises:
            ConditionSyntaxError: condition does not parse
            ConditionEvaluationError: condition failed at runtime
        """
        if condition is None or not condition.strip():
            return True
        return cls.compile(condition)(pipeline)

    @classmethod
    def compile(cls, condition: str) -> CompiledCondition:
        """Return the compiled form of condition, compiling on first use."""
        with cls._lock:
            compiled = cls._cache.get(condition)
            if compiled is not None:
                cls._hits += 1
                return compiled
            cls._misses += 1

        compiled = compile_expression(condition)
        logger.debug(f"Compiled condition: {condition}")

        with cls._lock:
            return cls._cache.setdefault(condition, compiled)

    @classmethod
    def is_cached(cls, condition: str) -> bool:
        with cls._lock:
            return condition in cls._cache

    @classmethod
    def cache_info(cls) -> Dict[str, int]:
        """Hit/miss counters and current cache size."""
        with cls._lock:
            return {"hits": cls._hits, "misses": cls._misses, "size": len(cls._cache)}

    @classmethod
    def reset(cls):
        """Drop every compiled condition and zero the counters (useful in tests)."""
        with cls._lock:
            cls._cache.clear()
            cls._hits = 0
            cls._misses = 0
