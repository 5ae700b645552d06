"""Operator engine for declarative (Simple) validation steps."""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..errors import UnsupportedOperatorError
from ..utils.error_handling import safe_call
from .accessors import is_collection, string_form

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "1", "yes"}
_FALSE_WORDS = {"false", "0", "no"}

# Symbolic forms accepted alongside the keywords
OPERATOR_ALIASES = {
    "==": "equals",
    "!=": "notequals",
    ">": "greaterthan",
    ">=": "greaterthanorequal",
    "<": "lessthan",
    "<=": "lessthanorequal",
    "match": "regex",
}


def normalize_operator(operator: Optional[str]) -> str:
    """Lowercase and drop whitespace/underscores: "Not_Equals" -> "notequals"."""
    text = (operator or "").strip()
    if text in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[text]
    key = re.sub(r"[\s_]+", "", text).lower()
    return OPERATOR_ALIASES.get(key, key)


def to_decimal(value: Any) -> Decimal:
    """Exact decimal form of a number or numeric text.

    Raises:
        ValueError: value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Boolean {value!r} is not a number")
    try:
        # str() keeps floats at their shortest repr instead of binary expansion
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{value!r} is not a number") from None


def coerce(text: Optional[str], target_type: Optional[type]) -> Any:
    """Convert target text to target_type.

    Raises:
        ValueError: text can't be read as target_type
    """
    if text is None or target_type is None or target_type is str:
        return text
    if isinstance(target_type, type) and issubclass(target_type, Enum):
        stripped = text.strip()
        if stripped in target_type.__members__:
            return target_type[stripped]
        for member in target_type:
            if member.name.lower() == stripped.lower():
                return member
        for member in target_type:
            if string_form(member.value).lower() == stripped.lower():
                return member
        raise ValueError(f"'{text}' is not a member of {target_type.__name__}")
    if target_type is bool:
        word = text.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(f"'{text}' is not a boolean")
    if target_type is Decimal:
        return to_decimal(text)
    if target_type is int:
        return int(to_decimal(text))
    if target_type is float:
        return float(text)
    if target_type is datetime:
        return datetime.fromisoformat(text.strip())
    if target_type is date:
        return date.fromisoformat(text.strip())
    return target_type(text)


class OperatorEngine:
    """Evaluates ``actual <operator> target`` for Simple validation steps.

    Target values arrive as text from the workflow definition and are
    coerced as each operator needs. An unknown operator is a configuration
    error and raises; any other failure (unparseable number, bad pattern,
    incompatible types) is logged and counts as a failed check.
    """

    def __init__(self):
        self._operators: Dict[str, Callable[[Any, Optional[str], Optional[type]], bool]] = {
            "equals": self._equals,
            "notequals": lambda a, t, d: not self._equals(a, t, d),
            "greaterthan": lambda a, t, d: self._compare(a, t) > 0,
            "greaterthanorequal": lambda a, t, d: self._compare(a, t) >= 0,
            "lessthan": lambda a, t, d: self._compare(a, t) < 0,
            "lessthanorequal": lambda a, t, d: self._compare(a, t) <= 0,
            "between": self._between,
            "contains": lambda a, t, d: (t or "").lower() in string_form(a).lower(),
            "startswith": lambda a, t, d: string_form(a).lower().startswith((t or "").lower()),
            "endswith": lambda a, t, d: string_form(a).lower().endswith((t or "").lower()),
            "regex": lambda a, t, d: re.search(t or "", string_form(a)) is not None,
            "listcontains": self._list_contains,
            "listcount": self._list_count,
        }

    @property
    def operators(self):
        """Supported operator keywords."""
        return sorted(set(self._operators) | {"isnull", "isnotnull"})

    def supports(self, operator: Optional[str]) -> bool:
        return normalize_operator(operator) in self.operators

    def check(
        self,
        actual: Any,
        operator: Optional[str],
        target_text: Optional[str],
        declared_type: Optional[type] = None,
    ) -> bool:
        """Apply operator to the actual value and the target text.

        Raises:
            UnsupportedOperatorError: operator is not recognised
        """
        key = normalize_operator(operator)
        if key == "isnull":
            return actual is None
        if key == "isnotnull":
            return actual is not None

        func = self._operators.get(key)
        if func is None:
            raise UnsupportedOperatorError(operator)

        result = safe_call(
            func,
            actual,
            target_text,
            declared_type,
            default=False,
            error_message=f"Operator '{operator}' failed for {actual!r} against {target_text!r}",
            logger_instance=logger,
        )
        return bool(result)

    def _equals(self, actual: Any, target_text: Optional[str], declared_type: Optional[type]) -> bool:
        if actual is None:
            return target_text is None
        if target_text is None:
            return False
        target_type = declared_type or type(actual)
        if isinstance(actual, bool) and not (isinstance(target_type, type) and issubclass(target_type, bool)):
            target_type = bool
        if target_type in (int, float, Decimal) and not isinstance(actual, bool):
            return to_decimal(actual) == to_decimal(target_text)
        return actual == coerce(target_text, target_type)

    def _compare(self, actual: Any, target_text: Optional[str]) -> int:
        left, right = to_decimal(actual), to_decimal(target_text)
        return (left > right) - (left < right)

    def _between(self, actual: Any, target_text: Optional[str], declared_type: Optional[type]) -> bool:
        bounds = [part.strip() for part in (target_text or "").split(",")]
        if len(bounds) != 2:
            raise ValueError(f"between needs 'low,high', got {target_text!r}")
        low, high = to_decimal(bounds[0]), to_decimal(bounds[1])
        return low <= to_decimal(actual) <= high

    def _list_contains(self, actual: Any, target_text: Optional[str], declared_type: Optional[type]) -> bool:
        if not is_collection(actual):
            return False
        wanted = (target_text or "").lower()
        return any(string_form(item).lower() == wanted for item in actual)

    def _list_count(self, actual: Any, target_text: Optional[str], declared_type: Optional[type]) -> bool:
        if not is_collection(actual):
            return False
        expected = int((target_text or "").strip())
        count = len(actual) if hasattr(actual, "__len__") else sum(1 for _ in actual)
        return count == expected


_default_engine = OperatorEngine()


def check(actual: Any, operator: str, target_text: Optional[str], declared_type: Optional[type] = None) -> bool:
    """Module-level shortcut for OperatorEngine.check on a shared engine."""
    return _default_engine.check(actual, operator, target_text, declared_type)
