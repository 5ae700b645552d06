"""Uniform field access over flow objects.

Flow objects are whatever the host hands the pipeline: dicts decoded from
JSON, dataclasses, pydantic models or plain objects. Steps and conditions
address their fields by name, so everything goes through ``get_field``
rather than ad-hoc ``getattr``/``[]`` calls.

Lookup per path segment: mapping key, then attribute, then integer index
for sequences. Exact names win; otherwise a case-insensitive match is tried
so "Amount" finds ``amount``.
"""

import dataclasses
import typing
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any, Optional, Tuple

MISSING = object()


def _field_names(obj: Any) -> Iterable:
    """Declared field names of obj, used for case-insensitive fallback."""
    if isinstance(obj, Mapping):
        return [k for k in obj.keys() if isinstance(k, str)]
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return [f.name for f in dataclasses.fields(obj)]
    model_fields = getattr(type(obj), "model_fields", None)
    if isinstance(model_fields, dict):
        return list(model_fields)
    return [name for name in getattr(obj, "__dict__", {}) if not name.startswith("_")]


def _get_segment(obj: Any, name: str) -> Tuple[bool, Any]:
    if obj is None:
        return False, None

    if isinstance(obj, Mapping):
        if name in obj:
            return True, obj[name]
    else:
        if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes, bytearray)):
            if name.lstrip("-").isdigit():
                index = int(name)
                if -len(obj) <= index < len(obj):
                    return True, obj[index]
                return False, None
        if not name.startswith("_") and hasattr(obj, name):
            return True, getattr(obj, name)

    lowered = name.lower()
    for candidate in _field_names(obj):
        if candidate.lower() == lowered:
            if isinstance(obj, Mapping):
                return True, obj[candidate]
            return True, getattr(obj, candidate)

    return False, None


def try_get_field(obj: Any, path: str) -> Tuple[bool, Any]:
    """Resolve a dotted field path. Returns (found, value)."""
    if not path:
        return False, None
    current = obj
    for segment in path.split("."):
        found, current = _get_segment(current, segment)
        if not found:
            return False, None
    return True, current


def get_field(obj: Any, path: str, default: Any = MISSING) -> Any:
    """Resolve a dotted field path.

    Raises:
        AttributeError: path not found and no default given
    """
    found, value = try_get_field(obj, path)
    if found:
        return value
    if default is MISSING:
        raise AttributeError(f"'{type(obj).__name__}' has no field '{path}'")
    return default


def _unwrap_optional(tp: Any) -> Any:
    origin = typing.get_origin(tp)
    if origin is typing.Union or (origin is not None and getattr(origin, "__name__", "") == "UnionType"):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
        return None
    if origin is not None:
        # List[int] -> list, Dict[...] -> dict
        return origin
    return tp


def _annotation_for(owner: Any, name: str) -> Optional[Any]:
    cls = owner if isinstance(owner, type) else type(owner)

    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, dict):
        for field_name, info in model_fields.items():
            if field_name == name or field_name.lower() == name.lower():
                return info.annotation

    try:
        hints = typing.get_type_hints(cls)
    except Exception:
        hints = getattr(cls, "__annotations__", {}) or {}

    if name in hints:
        return hints[name]
    for hint_name, hint in hints.items():
        if hint_name.lower() == name.lower():
            return hint
    return None


def declared_type(obj: Any, path: str) -> Optional[type]:
    """Declared type of the field at path, or None if it can't be known.

    Uses class annotations (dataclasses, pydantic models, annotated classes),
    unwrapping Optional[X] to X. Mappings have no declared types.
    """
    if not path:
        return None
    owner_path, _, leaf = path.rpartition(".")
    owner = obj
    if owner_path:
        found, owner = try_get_field(obj, owner_path)
        if not found:
            return None
    if owner is None or isinstance(owner, Mapping):
        return None

    annotation = _annotation_for(owner, leaf)
    if annotation is None or isinstance(annotation, str):
        return None
    resolved = _unwrap_optional(annotation)
    return resolved if isinstance(resolved, type) else None


def is_collection(value: Any) -> bool:
    """True for iterables that aren't text. Mappings iterate their keys."""
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray))


def string_form(value: Any) -> str:
    """Text form used by the string and list operators."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return value.name
    return str(value)
