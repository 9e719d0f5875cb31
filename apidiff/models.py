"""Data models for apidiff results and configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml

from .exceptions import ConfigError


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    def to_logging(self) -> int:
        return {
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]


class DiagnosticMode(Enum):
    STRICT = "strict"
    LENIENT = "lenient"


class Verdict(IntEnum):
    """Compatibility classification, ordered by severity."""
    UNCHANGED = 0
    COMPATIBLE = 1
    BREAKING = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Direction(Enum):
    """Which way a compared value flows between client and server."""
    INPUT = "input"
    OUTPUT = "output"


class NodeKind(Enum):
    SPECIFICATION = "specification"
    PATHS = "paths"
    PATH = "path"
    OPERATION = "operation"
    PARAMETERS = "parameters"
    PARAMETER = "parameter"
    REQUEST_BODY = "request_body"
    RESPONSES = "responses"
    RESPONSE = "response"
    MEDIA_TYPE = "media_type"
    HEADER = "header"
    SCHEMA = "schema"
    PROPERTY = "property"
    SECURITY = "security"
    SECURITY_SCHEMES = "security_schemes"


class ChangeKind(Enum):
    PATH_ADDED = "PATH_ADDED"
    PATH_REMOVED = "PATH_REMOVED"
    OPERATION_ADDED = "OPERATION_ADDED"
    OPERATION_REMOVED = "OPERATION_REMOVED"
    DEPRECATED = "DEPRECATED"
    PARAMETER_ADDED = "PARAMETER_ADDED"
    PARAMETER_REMOVED = "PARAMETER_REMOVED"
    PARAMETER_LOCATION_CHANGED = "PARAMETER_LOCATION_CHANGED"
    REQUIRED_CHANGED = "REQUIRED_CHANGED"
    REQUEST_BODY_ADDED = "REQUEST_BODY_ADDED"
    REQUEST_BODY_REMOVED = "REQUEST_BODY_REMOVED"
    MEDIA_TYPE_ADDED = "MEDIA_TYPE_ADDED"
    MEDIA_TYPE_REMOVED = "MEDIA_TYPE_REMOVED"
    RESPONSE_ADDED = "RESPONSE_ADDED"
    RESPONSE_REMOVED = "RESPONSE_REMOVED"
    HEADER_ADDED = "HEADER_ADDED"
    HEADER_REMOVED = "HEADER_REMOVED"
    SECURITY_ADDED = "SECURITY_ADDED"
    SECURITY_REMOVED = "SECURITY_REMOVED"
    SECURITY_SCHEME_ADDED = "SECURITY_SCHEME_ADDED"
    SECURITY_SCHEME_REMOVED = "SECURITY_SCHEME_REMOVED"
    SECURITY_SCHEME_CHANGED = "SECURITY_SCHEME_CHANGED"
    TYPE_CHANGED = "TYPE_CHANGED"
    FORMAT_CHANGED = "FORMAT_CHANGED"
    PROPERTY_ADDED = "PROPERTY_ADDED"
    PROPERTY_REMOVED = "PROPERTY_REMOVED"
    ADDITIONAL_PROPERTIES_CHANGED = "ADDITIONAL_PROPERTIES_CHANGED"
    ENUM_VALUES_ADDED = "ENUM_VALUES_ADDED"
    ENUM_VALUES_REMOVED = "ENUM_VALUES_REMOVED"
    CONSTRAINT_NARROWED = "CONSTRAINT_NARROWED"
    CONSTRAINT_WIDENED = "CONSTRAINT_WIDENED"
    NULLABLE_CHANGED = "NULLABLE_CHANGED"
    BRANCH_ADDED = "BRANCH_ADDED"
    BRANCH_REMOVED = "BRANCH_REMOVED"
    REFERENCE_UNRESOLVED = "REFERENCE_UNRESOLVED"
    EXTENSION_ADDED = "EXTENSION_ADDED"
    EXTENSION_REMOVED = "EXTENSION_REMOVED"
    EXTENSION_CHANGED = "EXTENSION_CHANGED"


@dataclass
class EngineConfig:
    """Global configuration for the diff engine."""
    enum_removal_breaks_output: bool = True
    diagnostic_mode: DiagnosticMode = DiagnosticMode.LENIENT
    ignore_paths: list[str] = field(default_factory=list)
    log_level: LogLevel = LogLevel.INFO

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""
        if not isinstance(data, dict):
            raise ConfigError("<root>", "configuration must be a mapping")

        config = cls()
        for key, value in data.items():
            if key == "enum_removal_breaks_output":
                if not isinstance(value, bool):
                    raise ConfigError(key, "expected a boolean")
                config.enum_removal_breaks_output = value
            elif key == "diagnostic_mode":
                config.diagnostic_mode = _enum_value(DiagnosticMode, key, str(value).lower())
            elif key == "ignore_paths":
                if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
                    raise ConfigError(key, "expected a list of JSONPath strings")
                config.ignore_paths = list(value)
            elif key == "log_level":
                config.log_level = _enum_value(LogLevel, key, str(value).upper())
            else:
                raise ConfigError(key, "unknown option")
        return config

    @classmethod
    def from_file(cls, path: str | Path) -> EngineConfig:
        """Load a config from a YAML or JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r') as f:
            content = f.read()

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(str(path), f"failed to parse: {e}")

        return cls.from_dict(data or {})


def _enum_value(enum_cls, key: str, value: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(key, f"'{value}' is not one of: {allowed}")


@dataclass
class ChangeEntry:
    """A single leaf-level finding."""
    location: str
    kind: ChangeKind
    verdict: Verdict
    message: str
    old_value: Any = None
    new_value: Any = None
    direction: Optional[Direction] = None
    extension: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "location": self.location,
            "kind": self.kind.value,
            "verdict": self.verdict.name,
            "message": self.message,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }
        if self.direction:
            result["direction"] = self.direction.value
        if self.extension:
            result["extension"] = self.extension
        return result


@dataclass
class ChangeSet:
    """
    One node of the result tree.

    The verdict is never stored: it is the most severe of the node's own
    findings and all of its children's verdicts.
    """
    element: str = ""
    kind: NodeKind = NodeKind.SPECIFICATION
    location: str = "$"
    changes: list[ChangeEntry] = field(default_factory=list)
    children: list[ChangeSet] = field(default_factory=list)

    @property
    def verdict(self) -> Verdict:
        verdict = Verdict.UNCHANGED
        for entry in self.changes:
            verdict = max(verdict, entry.verdict)
        for child in self.children:
            verdict = max(verdict, child.verdict)
        return verdict

    def is_unchanged(self) -> bool:
        return self.verdict == Verdict.UNCHANGED

    def is_compatible(self) -> bool:
        return self.verdict != Verdict.BREAKING

    def is_breaking(self) -> bool:
        return self.verdict == Verdict.BREAKING

    def add_change(
        self,
        kind: ChangeKind,
        verdict: Verdict,
        message: str,
        old_value: Any = None,
        new_value: Any = None,
        direction: Optional[Direction] = None,
        location: Optional[str] = None,
    ) -> ChangeEntry:
        entry = ChangeEntry(
            location=location or self.location,
            kind=kind,
            verdict=verdict,
            message=message,
            old_value=old_value,
            new_value=new_value,
            direction=direction,
        )
        self.changes.append(entry)
        return entry

    def add_child(self, child: Optional[ChangeSet]) -> None:
        """Attach a child node unless it carries no changes."""
        if child is not None and child.verdict != Verdict.UNCHANGED:
            self.children.append(child)

    def walk(self, depth: int = 0) -> Iterator[tuple[int, ChangeSet]]:
        """Yield (depth, node) pairs in pre-order."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def entries(self) -> Iterator[ChangeEntry]:
        """Yield every leaf finding in the tree."""
        for _, node in self.walk():
            yield from node.changes

    def to_dict(self) -> dict:
        return {
            "element": self.element,
            "kind": self.kind.value,
            "location": self.location,
            "verdict": self.verdict.name,
            "changes": [c.to_dict() for c in self.changes],
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class Summary:
    """Counts of findings by verdict."""
    total_changes: int = 0
    breaking_changes: int = 0
    compatible_changes: int = 0
    paths_added: int = 0
    paths_removed: int = 0

    def to_dict(self) -> dict:
        return {
            "total_changes": self.total_changes,
            "breaking_changes": self.breaking_changes,
            "compatible_changes": self.compatible_changes,
            "paths_added": self.paths_added,
            "paths_removed": self.paths_removed,
        }


@dataclass
class SpecificationChangeSet(ChangeSet):
    """Root of a comparison result."""
    old_id: str = ""
    new_id: str = ""

    def summary(self) -> Summary:
        summary = Summary()
        for entry in self.entries():
            summary.total_changes += 1
            if entry.verdict == Verdict.BREAKING:
                summary.breaking_changes += 1
            elif entry.verdict == Verdict.COMPATIBLE:
                summary.compatible_changes += 1
            if entry.kind == ChangeKind.PATH_ADDED:
                summary.paths_added += 1
            elif entry.kind == ChangeKind.PATH_REMOVED:
                summary.paths_removed += 1
        return summary

    def to_dict(self) -> dict:
        result = {
            "old": self.old_id,
            "new": self.new_id,
            "is_compatible": self.is_compatible(),
            "summary": self.summary().to_dict(),
        }
        result.update(super().to_dict())
        return result
