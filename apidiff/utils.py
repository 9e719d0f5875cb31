"""Utility functions for apidiff."""

from __future__ import annotations

import re
from typing import Any


_VARIABLE = re.compile(r'\{[^{}/]*\}')


def build_path(parent_path: str, key: str | int) -> str:
    """Build a JSONPath-style location from parent path and key."""
    if isinstance(key, int):
        return f"{parent_path}[{key}]"
    else:
        # Handle special characters in key names
        if re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', str(key)):
            return f"{parent_path}.{key}"
        else:
            return f"{parent_path}['{key}']"


def template_key(template: str) -> str:
    """
    Reduce a path template to its matching key.

    Variable names are dropped, so '/users/{id}' and '/users/{userId}'
    share the key '/users/{}'.
    """
    return _VARIABLE.sub('{}', template)


def template_variables(template: str) -> list[str]:
    """Return the variable names of a path template in order."""
    return [match[1:-1] for match in _VARIABLE.findall(template)]


def format_value(value: Any) -> str:
    """Format a value for messages."""
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    return str(value)


def normalize_status(status: Any) -> str:
    """Normalize a response status key ('2xx' -> '2XX')."""
    return str(status).strip().upper()
