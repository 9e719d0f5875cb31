"""
apidiff - Semantic diff and compatibility classifier for OpenAPI documents

Compares two API descriptions structurally and classifies every difference
as compatible or breaking, taking into account whether a value is sent by
the client (input) or returned by the server (output).
"""

from .diagnostics import DocumentIssue, get_policy, log_issues, raise_on_issues
from .document import Specification
from .engine import DiffEngine, compare
from .exceptions import (
    ApiDiffError,
    ConfigError,
    DocumentError,
    DocumentParseError,
    ValidationError,
)
from .extensions import (
    ExtensibleEnumComparator,
    ExtensionComparator,
    ExtensionContext,
    ExtensionRegistry,
)
from .loader import SpecificationLoader
from .models import (
    ChangeEntry,
    ChangeKind,
    ChangeSet,
    DiagnosticMode,
    Direction,
    EngineConfig,
    LogLevel,
    NodeKind,
    SpecificationChangeSet,
    Summary,
    Verdict,
)
from .render import HtmlRenderer, MarkdownRenderer, TextRenderer

__version__ = "1.0.0"
__all__ = [
    # Engine
    "DiffEngine",
    "compare",
    "EngineConfig",
    # Documents
    "SpecificationLoader",
    "Specification",
    "DiagnosticMode",
    "DocumentIssue",
    "get_policy",
    "log_issues",
    "raise_on_issues",
    # Results
    "ChangeSet",
    "SpecificationChangeSet",
    "ChangeEntry",
    "ChangeKind",
    "NodeKind",
    "Direction",
    "Verdict",
    "Summary",
    "LogLevel",
    # Extensions
    "ExtensionRegistry",
    "ExtensionComparator",
    "ExtensionContext",
    "ExtensibleEnumComparator",
    # Renderers
    "TextRenderer",
    "MarkdownRenderer",
    "HtmlRenderer",
    # Errors
    "ApiDiffError",
    "ConfigError",
    "DocumentError",
    "DocumentParseError",
    "ValidationError",
]
