"""Handling of issues found while reading a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from .exceptions import DocumentError
from .models import DiagnosticMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentIssue:
    """A structural problem at a location inside a document."""
    pointer: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} [{self.pointer}]"


DiagnosticPolicy = Callable[[str, list[DocumentIssue]], None]


def raise_on_issues(location: str, issues: list[DocumentIssue]) -> None:
    """Strict policy: any issue makes the document unusable."""
    if issues:
        raise DocumentError(location, issues)


def log_issues(location: str, issues: list[DocumentIssue]) -> None:
    """Lenient policy: report each issue and keep the best-effort result."""
    for issue in issues:
        logger.warning('Error reading file "%s". Error: %s', location, issue)


POLICIES: dict[DiagnosticMode, DiagnosticPolicy] = {
    DiagnosticMode.STRICT: raise_on_issues,
    DiagnosticMode.LENIENT: log_issues,
}


def get_policy(mode: DiagnosticMode) -> DiagnosticPolicy:
    return POLICIES[mode]
