"""Recursive, direction-aware comparison of schema graphs."""

from __future__ import annotations

import logging
import numbers
from typing import TYPE_CHECKING, Any, Optional

from .document import Schema
from .extensions import ExtensionContext
from .models import ChangeKind, ChangeSet, Direction, NodeKind, Verdict
from .utils import build_path, format_value

if TYPE_CHECKING:
    from .context import ComparisonContext

logger = logging.getLogger(__name__)

_IN_PROGRESS = object()

COMPOSITIONS = (
    ("oneOf", "one_of"),
    ("anyOf", "any_of"),
    ("allOf", "all_of"),
)


def _is_number(value: Any) -> bool:
    """True for a missing bound or a real number; booleans are not bounds."""
    return value is None or (isinstance(value, numbers.Real) and not isinstance(value, bool))


def classify(narrowed: bool, direction: Direction) -> Verdict:
    """
    Verdict for a constraint change.

    Narrowing rejects requests that used to be accepted; widening lets
    responses carry values clients have never seen.
    """
    if direction == Direction.INPUT:
        return Verdict.BREAKING if narrowed else Verdict.COMPATIBLE
    return Verdict.COMPATIBLE if narrowed else Verdict.BREAKING


def _describe(schema: Optional[Schema]) -> str:
    if schema is None:
        return "none"
    return schema.ref or schema.kind or "schema"


def _permissiveness(additional: Any) -> int:
    if additional is False:
        return 0
    if isinstance(additional, Schema):
        return 1
    return 2


class SchemaDiffer:
    """
    Compares two schema graphs.

    Handles:
    - Named references, resolved through each document's schema arena
    - Cycles, through a visited-pair cache keyed by node identity
    - Direction: the same change breaks requests or responses, not both
    """

    def __init__(self, context: ComparisonContext):
        self.context = context
        self._visited: dict[tuple, Any] = {}

    def diff(
        self,
        old: Optional[Schema],
        new: Optional[Schema],
        direction: Direction,
        location: str,
        element: str = ""
    ) -> ChangeSet:
        """
        Compare two schemas.

        Args:
            old: Schema from the old document (may be a reference stub)
            new: Schema from the new document (may be a reference stub)
            direction: Whether the value is sent by clients or received by them
            location: Location of the schema in the document

        Returns:
            ChangeSet for the pair; pairs already compared in this call
            return the node built the first time
        """
        node = ChangeSet(
            element=element or _describe(old if old is not None else new),
            kind=NodeKind.SCHEMA,
            location=location,
        )

        if old is None and new is None:
            return node

        if old is None or new is None:
            narrowed = old is None
            node.add_change(
                ChangeKind.TYPE_CHANGED,
                classify(narrowed, direction),
                f"Schema {'added' if narrowed else 'removed'}",
                old_value=_describe(old),
                new_value=_describe(new),
                direction=direction,
            )
            return node

        old_resolved = self.context.old.resolve(old)
        new_resolved = self.context.new.resolve(new)

        if old_resolved is None or new_resolved is None:
            self._diff_unresolved(old, new, old_resolved, new_resolved, direction, node)
            return node

        key = (id(old_resolved), id(new_resolved), direction)
        cached = self._visited.get(key)
        if cached is _IN_PROGRESS:
            logger.debug("Cycle at %s (%s), not descending", location, node.element)
            return node
        if cached is not None:
            return cached

        self._visited[key] = _IN_PROGRESS
        self._diff_resolved(old_resolved, new_resolved, direction, node)
        self._visited[key] = node
        return node

    def _diff_unresolved(
        self,
        old: Schema,
        new: Schema,
        old_resolved: Optional[Schema],
        new_resolved: Optional[Schema],
        direction: Direction,
        node: ChangeSet
    ):
        """Report references that do not resolve to a definition."""
        if new_resolved is None:
            if old_resolved is None and old.ref == new.ref:
                return
            verdict = Verdict.BREAKING
            message = f"Reference '{new.ref}' cannot be resolved in new document"
        else:
            verdict = Verdict.COMPATIBLE
            message = f"Reference '{old.ref}' could not be resolved in old document"

        node.add_change(
            ChangeKind.REFERENCE_UNRESOLVED,
            verdict,
            message,
            old_value=old.ref,
            new_value=new.ref,
            direction=direction,
        )

    def _diff_resolved(
        self,
        old: Schema,
        new: Schema,
        direction: Direction,
        node: ChangeSet
    ):
        """Compare two resolved definitions."""
        old_kind = old.kind
        new_kind = new.kind

        if old_kind != new_kind:
            if old_kind and new_kind:
                node.add_change(
                    ChangeKind.TYPE_CHANGED,
                    Verdict.BREAKING,
                    f"Type changed from {old_kind} to {new_kind}",
                    old_value=old_kind,
                    new_value=new_kind,
                    direction=direction,
                )
                return
            # Declaring a type where there was none restricts the value
            node.add_change(
                ChangeKind.TYPE_CHANGED,
                classify(old_kind is None, direction),
                f"Type changed from {format_value(old_kind)} to {format_value(new_kind)}",
                old_value=old_kind,
                new_value=new_kind,
                direction=direction,
            )

        self._diff_format(old, new, direction, node)
        self._diff_nullable(old, new, direction, node)
        self._diff_enum(old, new, direction, node)

        self._diff_bound(node, "minimum", old.minimum, new.minimum, direction, lower=True)
        self._diff_bound(node, "maximum", old.maximum, new.maximum, direction, lower=False)
        self._diff_exclusive(node, "exclusiveMinimum", old.exclusive_minimum,
                             new.exclusive_minimum, direction, lower=True)
        self._diff_exclusive(node, "exclusiveMaximum", old.exclusive_maximum,
                             new.exclusive_maximum, direction, lower=False)
        self._diff_bound(node, "minLength", old.min_length, new.min_length, direction, lower=True)
        self._diff_bound(node, "maxLength", old.max_length, new.max_length, direction, lower=False)
        self._diff_pattern(old, new, direction, node)

        self._diff_properties(old, new, direction, node)
        self._diff_additional_properties(old, new, direction, node)

        if old.items is not None or new.items is not None:
            node.add_child(self.diff(
                old.items, new.items, direction, build_path(node.location, "items"), "items"
            ))
        self._diff_bound(node, "minItems", old.min_items, new.min_items, direction, lower=True)
        self._diff_bound(node, "maxItems", old.max_items, new.max_items, direction, lower=False)

        for keyword, attr in COMPOSITIONS:
            self._diff_branches(keyword, getattr(old, attr), getattr(new, attr), direction, node)

        if old.deprecated != new.deprecated:
            node.add_change(
                ChangeKind.DEPRECATED,
                Verdict.COMPATIBLE,
                "Schema deprecated" if new.deprecated else "Schema no longer deprecated",
                old_value=old.deprecated,
                new_value=new.deprecated,
                direction=direction,
            )

        node.changes.extend(self.context.extensions.compare(
            old.extensions,
            new.extensions,
            ExtensionContext(node.location, NodeKind.SCHEMA, direction),
        ))

    def _diff_format(self, old: Schema, new: Schema, direction: Direction, node: ChangeSet):
        if old.format == new.format:
            return

        if old.format and new.format:
            verdict = Verdict.BREAKING
        else:
            verdict = classify(old.format is None, direction)

        node.add_change(
            ChangeKind.FORMAT_CHANGED,
            verdict,
            f"Format changed from {format_value(old.format)} to {format_value(new.format)}",
            old_value=old.format,
            new_value=new.format,
            direction=direction,
        )

    def _diff_nullable(self, old: Schema, new: Schema, direction: Direction, node: ChangeSet):
        if old.nullable == new.nullable:
            return

        node.add_change(
            ChangeKind.NULLABLE_CHANGED,
            classify(new.nullable, direction),
            "Value became nullable" if new.nullable else "Value is no longer nullable",
            old_value=old.nullable,
            new_value=new.nullable,
            direction=direction,
        )

    def _diff_enum(self, old: Schema, new: Schema, direction: Direction, node: ChangeSet):
        if old.enum is None and new.enum is None:
            return

        location = build_path(node.location, "enum")

        if old.enum is None or new.enum is None:
            narrowed = old.enum is None
            node.add_change(
                ChangeKind.CONSTRAINT_NARROWED if narrowed else ChangeKind.CONSTRAINT_WIDENED,
                classify(narrowed, direction),
                f"Enumeration {'added' if narrowed else 'removed'}",
                old_value=old.enum,
                new_value=new.enum,
                direction=direction,
                location=location,
            )
            return

        removed = [v for v in old.enum if v not in new.enum]
        added = [v for v in new.enum if v not in old.enum]

        if removed:
            breaks = direction == Direction.INPUT or self.context.config.enum_removal_breaks_output
            node.add_change(
                ChangeKind.ENUM_VALUES_REMOVED,
                Verdict.BREAKING if breaks else Verdict.COMPATIBLE,
                f"Enum values removed: {format_value(removed)}",
                old_value=removed,
                direction=direction,
                location=location,
            )
        if added:
            node.add_change(
                ChangeKind.ENUM_VALUES_ADDED,
                Verdict.COMPATIBLE,
                f"Enum values added: {format_value(added)}",
                new_value=added,
                direction=direction,
                location=location,
            )

    def _diff_bound(
        self,
        node: ChangeSet,
        name: str,
        old_value: Any,
        new_value: Any,
        direction: Direction,
        lower: bool
    ):
        """Compare a numeric lower or upper bound."""
        if old_value == new_value:
            return

        if not (_is_number(old_value) and _is_number(new_value)):
            node.add_change(
                ChangeKind.CONSTRAINT_NARROWED,
                Verdict.BREAKING,
                f"{name} changed to an unorderable value: "
                f"{format_value(old_value)} -> {format_value(new_value)}",
                old_value=old_value,
                new_value=new_value,
                direction=direction,
                location=build_path(node.location, name),
            )
            return

        if old_value is None:
            narrowed = True
        elif new_value is None:
            narrowed = False
        elif lower:
            narrowed = new_value > old_value
        else:
            narrowed = new_value < old_value

        self._add_constraint(node, name, old_value, new_value, narrowed, direction)

    def _diff_exclusive(
        self,
        node: ChangeSet,
        name: str,
        old_value: Any,
        new_value: Any,
        direction: Direction,
        lower: bool
    ):
        """Compare exclusive bounds in both the boolean and numeric forms."""
        old_flag = old_value is None or isinstance(old_value, bool)
        new_flag = new_value is None or isinstance(new_value, bool)

        if old_flag and new_flag:
            if bool(old_value) != bool(new_value):
                self._add_constraint(node, name, old_value, new_value, bool(new_value), direction)
        elif old_flag and old_value is not None:
            # switching between the boolean and the numeric form
            self._add_constraint(node, name, old_value, new_value, True, direction)
        elif new_flag and new_value is not None:
            self._add_constraint(node, name, old_value, new_value, True, direction)
        else:
            self._diff_bound(node, name, old_value, new_value, direction, lower)

    def _diff_pattern(self, old: Schema, new: Schema, direction: Direction, node: ChangeSet):
        if old.pattern == new.pattern:
            return
        # a changed pattern cannot be proven wider, so it counts as narrowing
        self._add_constraint(node, "pattern", old.pattern, new.pattern,
                             new.pattern is not None, direction)

    def _add_constraint(
        self,
        node: ChangeSet,
        name: str,
        old_value: Any,
        new_value: Any,
        narrowed: bool,
        direction: Direction
    ):
        node.add_change(
            ChangeKind.CONSTRAINT_NARROWED if narrowed else ChangeKind.CONSTRAINT_WIDENED,
            classify(narrowed, direction),
            f"{name} {'narrowed' if narrowed else 'widened'}: "
            f"{format_value(old_value)} -> {format_value(new_value)}",
            old_value=old_value,
            new_value=new_value,
            direction=direction,
            location=build_path(node.location, name),
        )

    def _diff_properties(self, old: Schema, new: Schema, direction: Direction, node: ChangeSet):
        """Compare named properties and their required flags."""
        old_required = set(old.required)
        new_required = set(new.required)
        base = build_path(node.location, "properties")

        names = list(old.properties)
        names.extend(n for n in new.properties if n not in old.properties)

        for name in names:
            location = build_path(base, name)
            prop = ChangeSet(element=name, kind=NodeKind.PROPERTY, location=location)

            if name not in new.properties:
                if direction == Direction.INPUT:
                    # clients still sending it are rejected only by closed objects
                    breaks = new.additional_properties is False
                else:
                    breaks = name in old_required
                prop.add_change(
                    ChangeKind.PROPERTY_REMOVED,
                    Verdict.BREAKING if breaks else Verdict.COMPATIBLE,
                    f"Property '{name}' removed",
                    old_value=_describe(old.properties[name]),
                    direction=direction,
                )
            elif name not in old.properties:
                required = name in new_required
                breaks = (
                    direction == Direction.INPUT
                    and required
                    and not self._has_default(new.properties[name])
                )
                prop.add_change(
                    ChangeKind.PROPERTY_ADDED,
                    Verdict.BREAKING if breaks else Verdict.COMPATIBLE,
                    f"{'Required' if required else 'Optional'} property '{name}' added",
                    new_value=_describe(new.properties[name]),
                    direction=direction,
                )
            else:
                was_required = name in old_required
                is_required = name in new_required
                if was_required != is_required:
                    if direction == Direction.INPUT:
                        breaks = is_required
                    else:
                        breaks = was_required
                    prop.add_change(
                        ChangeKind.REQUIRED_CHANGED,
                        Verdict.BREAKING if breaks else Verdict.COMPATIBLE,
                        f"Property '{name}' is {'now' if is_required else 'no longer'} required",
                        old_value=was_required,
                        new_value=is_required,
                        direction=direction,
                    )
                prop.add_child(self.diff(
                    old.properties[name], new.properties[name], direction, location, name
                ))

            node.add_child(prop)

    def _has_default(self, schema: Schema) -> bool:
        resolved = self.context.new.resolve(schema)
        return resolved is not None and resolved.has_default

    def _diff_additional_properties(
        self,
        old: Schema,
        new: Schema,
        direction: Direction,
        node: ChangeSet
    ):
        old_extra = old.additional_properties
        new_extra = new.additional_properties
        location = build_path(node.location, "additionalProperties")

        if isinstance(old_extra, Schema) and isinstance(new_extra, Schema):
            node.add_child(self.diff(old_extra, new_extra, direction, location, "additionalProperties"))
            return

        old_rank = _permissiveness(old_extra)
        new_rank = _permissiveness(new_extra)
        if old_rank == new_rank:
            return

        narrowed = new_rank < old_rank
        node.add_change(
            ChangeKind.ADDITIONAL_PROPERTIES_CHANGED,
            classify(narrowed, direction),
            f"additionalProperties {'narrowed' if narrowed else 'widened'}",
            old_value=_describe(old_extra) if isinstance(old_extra, Schema) else old_extra,
            new_value=_describe(new_extra) if isinstance(new_extra, Schema) else new_extra,
            direction=direction,
            location=location,
        )

    def _diff_branches(
        self,
        keyword: str,
        old_branches: list[Schema],
        new_branches: list[Schema],
        direction: Direction,
        node: ChangeSet
    ):
        """Compare oneOf/anyOf/allOf member lists."""
        if not old_branches and not new_branches:
            return

        base = build_path(node.location, keyword)
        pairs, removed, added = self._match_branches(old_branches, new_branches)

        for i, j in pairs:
            node.add_child(self.diff(
                old_branches[i], new_branches[j], direction,
                build_path(base, j), f"{keyword}[{j}]"
            ))

        for i in removed:
            # a lost allOf member drops guarantees every response used to meet
            breaks = direction == Direction.INPUT or keyword == "allOf"
            node.add_change(
                ChangeKind.BRANCH_REMOVED,
                Verdict.BREAKING if breaks else Verdict.COMPATIBLE,
                f"{keyword} branch {_describe(old_branches[i])} removed",
                old_value=_describe(old_branches[i]),
                direction=direction,
                location=build_path(base, i),
            )

        for j in added:
            node.add_change(
                ChangeKind.BRANCH_ADDED,
                Verdict.COMPATIBLE,
                f"{keyword} branch {_describe(new_branches[j])} added",
                new_value=_describe(new_branches[j]),
                direction=direction,
                location=build_path(base, j),
            )

    def _match_branches(
        self,
        old_branches: list[Schema],
        new_branches: list[Schema]
    ) -> tuple[list[tuple[int, int]], list[int], list[int]]:
        """
        Pair branches across versions.

        Branches naming the same reusable schema pair first. The rest pair
        by index when their counts match, otherwise by resolved kind in
        document order. Whatever is left over was removed or added.

        Returns:
            Tuple of (pairs, removed old indices, added new indices)
        """
        pairs = []
        old_left = list(range(len(old_branches)))
        new_left = list(range(len(new_branches)))

        for i in list(old_left):
            ref = old_branches[i].ref
            if ref is None:
                continue
            for j in new_left:
                if new_branches[j].ref == ref:
                    pairs.append((i, j))
                    old_left.remove(i)
                    new_left.remove(j)
                    break

        if len(old_left) == len(new_left):
            pairs.extend(zip(old_left, new_left))
            old_left, new_left = [], []
        else:
            for i in list(old_left):
                signature = self._signature(self.context.old, old_branches[i])
                for j in new_left:
                    if self._signature(self.context.new, new_branches[j]) == signature:
                        pairs.append((i, j))
                        old_left.remove(i)
                        new_left.remove(j)
                        break

        pairs.sort()
        return pairs, old_left, new_left

    @staticmethod
    def _signature(spec, schema: Schema) -> Optional[str]:
        resolved = spec.resolve(schema)
        return resolved.kind if resolved is not None else None
