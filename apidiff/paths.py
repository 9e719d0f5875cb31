"""Matching of path templates between two documents."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .document import PathItem
from .extensions import ExtensionContext
from .models import ChangeKind, ChangeSet, NodeKind, Verdict
from .operations import OperationDiffer
from .utils import build_path, template_key, template_variables

if TYPE_CHECKING:
    from .context import ComparisonContext

logger = logging.getLogger(__name__)


class PathMatcher:
    """
    Aligns path templates and diffs the operations of matched paths.

    Two templates match when their literal segments and variable positions
    agree; variable names are ignored.
    """

    def __init__(self, context: ComparisonContext):
        self.context = context
        self.operations = OperationDiffer(context)

    @staticmethod
    def match(
        old_templates: list[str],
        new_templates: list[str]
    ) -> tuple[list[tuple[str, str]], list[str], list[str]]:
        """
        Pair old and new templates.

        Templates sharing a key pair in document order, an identical
        template taking precedence.

        Returns:
            Tuple of (pairs, removed old templates, added new templates)
        """
        groups: dict[str, list[str]] = {}
        for template in new_templates:
            groups.setdefault(template_key(template), []).append(template)

        partners = {}
        for template in old_templates:
            candidates = groups.get(template_key(template), [])
            if template in candidates:
                candidates.remove(template)
                partners[template] = template

        removed = []
        for template in old_templates:
            if template in partners:
                continue
            candidates = groups.get(template_key(template))
            if not candidates:
                removed.append(template)
                continue
            partners[template] = candidates.pop(0)

        pairs = [(t, partners[t]) for t in old_templates if t in partners]
        paired = set(partners.values())
        added = [t for t in new_templates if t not in paired]
        return pairs, removed, added

    def diff(
        self,
        old_paths: dict[str, PathItem],
        new_paths: dict[str, PathItem],
        location: str = "$.paths"
    ) -> ChangeSet:
        """Compare the path maps of two documents."""
        node = ChangeSet(element="paths", kind=NodeKind.PATHS, location=location)
        pairs, removed, added = self.match(list(old_paths), list(new_paths))
        partners = dict(pairs)

        for template in old_paths:
            if template in partners:
                new_template = partners[template]
                node.add_child(self._diff_path(
                    old_paths[template],
                    new_paths[new_template],
                    build_path(location, new_template),
                ))
                continue

            child = ChangeSet(element=template, kind=NodeKind.PATH, location=build_path(location, template))
            child.add_change(
                ChangeKind.PATH_REMOVED,
                Verdict.BREAKING,
                f"Path {template} removed",
                old_value=template,
            )
            node.add_child(child)
            logger.debug("Path removed: %s", template)

        for template in added:
            child = ChangeSet(element=template, kind=NodeKind.PATH, location=build_path(location, template))
            child.add_change(
                ChangeKind.PATH_ADDED,
                Verdict.COMPATIBLE,
                f"Path {template} added",
                new_value=template,
            )
            node.add_child(child)
            logger.debug("Path added: %s", template)

        return node

    def _diff_path(self, old: PathItem, new: PathItem, location: str) -> ChangeSet:
        """Compare the operations of two matched path items."""
        element = old.template if old.template == new.template else f"{old.template} -> {new.template}"
        node = ChangeSet(element=element, kind=NodeKind.PATH, location=location)

        renames = {
            old_name: new_name
            for old_name, new_name in zip(template_variables(old.template), template_variables(new.template))
            if old_name != new_name
        }

        for method, old_operation in old.operations.items():
            op_location = build_path(location, method)
            if method in new.operations:
                node.add_child(self.operations.diff(
                    old_operation, new.operations[method], op_location, renames
                ))
                continue

            child = ChangeSet(
                element=f"{method.upper()} {old.template}",
                kind=NodeKind.OPERATION,
                location=op_location,
            )
            child.add_change(
                ChangeKind.OPERATION_REMOVED,
                Verdict.BREAKING,
                f"Operation {method.upper()} {old.template} removed",
                old_value=method.upper(),
            )
            node.add_child(child)

        for method in new.operations:
            if method in old.operations:
                continue
            child = ChangeSet(
                element=f"{method.upper()} {new.template}",
                kind=NodeKind.OPERATION,
                location=build_path(location, method),
            )
            child.add_change(
                ChangeKind.OPERATION_ADDED,
                Verdict.COMPATIBLE,
                f"Operation {method.upper()} {new.template} added",
                new_value=method.upper(),
            )
            node.add_child(child)

        node.changes.extend(self.context.extensions.compare(
            old.extensions,
            new.extensions,
            ExtensionContext(location, NodeKind.PATH),
        ))

        return node
