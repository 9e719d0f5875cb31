"""Pluggable comparators for vendor extension (x-*) fields."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from .models import ChangeEntry, ChangeKind, Direction, NodeKind, Verdict
from .utils import build_path, format_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtensionContext:
    """Where in the document an extension map was found."""
    location: str
    node: NodeKind
    direction: Optional[Direction] = None


@runtime_checkable
class ExtensionComparator(Protocol):
    """
    Compares the values of the extension keys it owns.

    Implementations must be free of side effects: the registry may call
    them in any order. A side that lacks the key is passed as None.
    """
    keys: tuple[str, ...]

    def compare(
        self,
        old_value: Any,
        new_value: Any,
        context: ExtensionContext
    ) -> list[ChangeEntry]:
        ...


class ExtensibleEnumComparator:
    """
    Handles ``x-extensible-enum``: an enum clients must tolerate growing.

    Removing a value rejects input that used to be valid; adding one is
    always allowed.
    """

    keys = ("x-extensible-enum",)

    def compare(
        self,
        old_value: Any,
        new_value: Any,
        context: ExtensionContext
    ) -> list[ChangeEntry]:
        old_values = self._values(old_value)
        new_values = self._values(new_value)
        location = build_path(context.location, self.keys[0])
        entries = []

        removed = [v for v in old_values if v not in new_values]
        added = [v for v in new_values if v not in old_values]

        if removed:
            verdict = Verdict.BREAKING if context.direction == Direction.INPUT else Verdict.COMPATIBLE
            entries.append(ChangeEntry(
                location=location,
                kind=ChangeKind.EXTENSION_CHANGED,
                verdict=verdict,
                message=f"Extensible enum values removed: {format_value(removed)}",
                old_value=removed,
                direction=context.direction,
                extension=self.keys[0],
            ))
        if added:
            entries.append(ChangeEntry(
                location=location,
                kind=ChangeKind.EXTENSION_CHANGED,
                verdict=Verdict.COMPATIBLE,
                message=f"Extensible enum values added: {format_value(added)}",
                new_value=added,
                direction=context.direction,
                extension=self.keys[0],
            ))
        return entries

    @staticmethod
    def _values(value: Any) -> list:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        # a lone scalar is a one-value enum
        return [value]


class ExtensionRegistry:
    """Resolves extension keys to the comparators that own them."""

    def __init__(self, comparators: Optional[list[ExtensionComparator]] = None):
        self._comparators: dict[str, list[ExtensionComparator]] = {}
        for comparator in comparators or []:
            self.register(comparator)

    @classmethod
    def default(cls) -> ExtensionRegistry:
        """Registry with the built-in comparators."""
        return cls([ExtensibleEnumComparator()])

    def register(self, comparator: ExtensionComparator) -> ExtensionComparator:
        """Register a comparator for every key it declares."""
        if not isinstance(comparator, ExtensionComparator):
            raise TypeError(
                f"{type(comparator).__name__} must declare 'keys' and 'compare'"
            )
        for key in comparator.keys:
            self._comparators.setdefault(key, []).append(comparator)
        logger.debug("Registered %s for %s", type(comparator).__name__, comparator.keys)
        return comparator

    @property
    def keys(self) -> list[str]:
        return sorted(self._comparators)

    def compare(
        self,
        old_extensions: Optional[dict],
        new_extensions: Optional[dict],
        context: ExtensionContext
    ) -> list[ChangeEntry]:
        """
        Compare two extension maps.

        Keys are visited in sorted order. Keys without a comparator are
        reported as compatible additions, removals or changes.
        """
        old_extensions = old_extensions or {}
        new_extensions = new_extensions or {}
        entries = []

        for key in sorted(set(old_extensions) | set(new_extensions)):
            old_value = old_extensions.get(key)
            new_value = new_extensions.get(key)
            comparators = self._comparators.get(key)

            if comparators:
                for comparator in comparators:
                    entries.extend(comparator.compare(old_value, new_value, context))
                continue

            if key not in old_extensions:
                kind, message = ChangeKind.EXTENSION_ADDED, f"Extension {key} added"
            elif key not in new_extensions:
                kind, message = ChangeKind.EXTENSION_REMOVED, f"Extension {key} removed"
            elif old_value != new_value:
                kind, message = ChangeKind.EXTENSION_CHANGED, f"Extension {key} changed"
            else:
                continue

            entries.append(ChangeEntry(
                location=build_path(context.location, key),
                kind=kind,
                verdict=Verdict.COMPATIBLE,
                message=message,
                old_value=old_value,
                new_value=new_value,
                direction=context.direction,
                extension=key,
            ))

        return entries
