"""JSONPath utilities for apidiff."""

from __future__ import annotations

from typing import Any

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.jsonpath import Fields, Index


class JSONPathMatcher:
    """Utility class for JSONPath matching and deletion."""

    # Cache for compiled JSONPath expressions
    _cache: dict = {}

    @classmethod
    def compile(cls, path: str):
        """Compile and cache a JSONPath expression."""
        if path not in cls._cache:
            try:
                cls._cache[path] = jsonpath_parse(path)
            except (JsonPathLexerError, JsonPathParserError) as e:
                raise ValueError(f"Invalid JSONPath expression '{path}': {e}")
        return cls._cache[path]

    @classmethod
    def delete_paths(cls, data: Any, paths: list[str]) -> int:
        """
        Delete all nodes matching the given JSONPath expressions.

        Args:
            data: The data to modify (will be modified in place)
            paths: List of JSONPath expressions

        Returns:
            Number of nodes deleted
        """
        deleted = 0
        for path in paths:
            deleted += cls._delete_path(data, path)
        return deleted

    @classmethod
    def _delete_path(cls, data: Any, path: str) -> int:
        """Delete a single JSONPath from data."""
        expr = cls.compile(path)
        deleted = 0
        list_items: list[tuple[list, int]] = []

        for match in expr.find(data):
            if match.context is None:
                continue
            parent = match.context.value
            step = match.path

            if isinstance(step, Fields) and isinstance(parent, dict):
                for field in step.fields:
                    if field in parent:
                        del parent[field]
                        deleted += 1
            elif isinstance(step, Index) and isinstance(parent, list):
                indices = getattr(step, 'indices', None)
                if indices is None:
                    indices = (step.index,)
                list_items.extend((parent, i) for i in indices)

        # Remove list items from the back so earlier indices stay valid
        for parent, index in sorted(list_items, key=lambda item: item[1], reverse=True):
            if 0 <= index < len(parent):
                del parent[index]
                deleted += 1

        return deleted
