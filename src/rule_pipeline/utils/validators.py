"""Validation utilities for workflow names and implementation keys."""

import re


def validate_workflow_name(name: str) -> str:
    """
    Validate a workflow name before it is turned into a file path.

    Names may contain letters, digits, dash, underscore and dot, and may be
    grouped into folders with '/' (e.g. "orders/line-item").

    Args:
        name: Workflow name to validate

    Returns:
        Validated workflow name

    Raises:
        ValueError: If the name is empty, too long, or could escape the
            workflows directory
    """
    if not name:
        raise ValueError("Workflow name cannot be empty")

    if not re.match(r'^[a-zA-Z0-9_.-]+(/[a-zA-Z0-9_.-]+)*$', name):
        raise ValueError(f"Invalid workflow name: {name}")

    if '..' in name or name.startswith('/') or '\\' in name:
        raise ValueError(f"Workflow name contains invalid sequence: {name}")

    if len(name) > 255:
        raise ValueError("Workflow name too long")

    return name


def validate_implementation_key(key: str, name: str = "implementation key") -> str:
    """
    Validate a rule registry key.

    Args:
        key: Key value to validate
        name: Name of the key (for error messages)

    Returns:
        Validated key

    Raises:
        ValueError: If key is invalid
    """
    if not key or not key.strip():
        raise ValueError(f"{name} cannot be empty")

    # Dotted/colon forms allowed so hosts can use module-style keys
    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_.:-]*$', key):
        raise ValueError(f"Invalid {name}: {key}")

    if len(key) > 200:
        raise ValueError(f"{name} too long")

    return key
