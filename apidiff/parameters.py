"""Comparison of named parameter collections."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .document import Parameter
from .extensions import ExtensionContext
from .models import ChangeKind, ChangeSet, Direction, NodeKind, Verdict

if TYPE_CHECKING:
    from .context import ComparisonContext


def _parameter_location(base: str, parameter: Parameter) -> str:
    return f"{base}[?(@.in=='{parameter.location}' && @.name=='{parameter.name}')]"


class ParameterDiffer:
    """
    Diffs path, query, header and cookie parameters.

    Parameters are matched by (name, location). Path parameters can be
    renamed through the positional map the path matcher builds, since
    their names are not part of the wire format.
    """

    def __init__(self, context: ComparisonContext):
        self.context = context

    def diff(
        self,
        old_params: list[Parameter],
        new_params: list[Parameter],
        location: str,
        renames: Optional[dict[str, str]] = None
    ) -> ChangeSet:
        """
        Compare two parameter lists.

        Args:
            old_params: Parameters of the old operation
            new_params: Parameters of the new operation
            location: Location of the parameter list
            renames: Old path variable name -> new path variable name

        Returns:
            ChangeSet with one child per changed parameter
        """
        node = ChangeSet(element="parameters", kind=NodeKind.PARAMETERS, location=location)
        renames = renames or {}

        old_map = {}
        for param in old_params:
            name = renames.get(param.name, param.name) if param.location == "path" else param.name
            old_map[(name, param.location)] = param
        new_map = {param.key: param for param in new_params}

        added = [key for key in new_map if key not in old_map]

        for key, old_param in old_map.items():
            if key in new_map:
                node.add_child(self._diff_parameter(old_param, new_map[key], location))
                continue

            moved = next((k for k in added if k[0] == key[0]), None)
            if moved is not None:
                added.remove(moved)
                node.add_child(self._moved(old_param, new_map[moved], location))
                continue

            child = self._node(old_param, location)
            child.add_change(
                ChangeKind.PARAMETER_REMOVED,
                Verdict.BREAKING if old_param.required else Verdict.COMPATIBLE,
                f"{'Required' if old_param.required else 'Optional'} "
                f"{old_param.location} parameter '{old_param.name}' removed",
                old_value=old_param.name,
                direction=Direction.INPUT,
            )
            node.add_child(child)

        for key in added:
            new_param = new_map[key]
            child = self._node(new_param, location)
            child.add_change(
                ChangeKind.PARAMETER_ADDED,
                Verdict.BREAKING if new_param.required else Verdict.COMPATIBLE,
                f"{'Required' if new_param.required else 'Optional'} "
                f"{new_param.location} parameter '{new_param.name}' added",
                new_value=new_param.name,
                direction=Direction.INPUT,
            )
            node.add_child(child)

        return node

    def _node(self, param: Parameter, base: str) -> ChangeSet:
        return ChangeSet(
            element=f"{param.name} ({param.location})",
            kind=NodeKind.PARAMETER,
            location=_parameter_location(base, param),
        )

    def _moved(self, old: Parameter, new: Parameter, base: str) -> ChangeSet:
        child = self._node(new, base)
        child.add_change(
            ChangeKind.PARAMETER_LOCATION_CHANGED,
            Verdict.BREAKING,
            f"Parameter '{old.name}' moved from {old.location} to {new.location}",
            old_value=old.location,
            new_value=new.location,
            direction=Direction.INPUT,
        )
        return child

    def _diff_parameter(self, old: Parameter, new: Parameter, base: str) -> ChangeSet:
        """Compare one matched parameter."""
        child = self._node(new, base)

        if old.required != new.required:
            child.add_change(
                ChangeKind.REQUIRED_CHANGED,
                Verdict.BREAKING if new.required else Verdict.COMPATIBLE,
                f"Parameter '{new.name}' is {'now' if new.required else 'no longer'} required",
                old_value=old.required,
                new_value=new.required,
                direction=Direction.INPUT,
            )

        if old.deprecated != new.deprecated:
            child.add_change(
                ChangeKind.DEPRECATED,
                Verdict.COMPATIBLE,
                f"Parameter '{new.name}' {'deprecated' if new.deprecated else 'no longer deprecated'}",
                old_value=old.deprecated,
                new_value=new.deprecated,
            )

        if old.schema is not None or new.schema is not None:
            child.add_child(self.context.schemas.diff(
                old.schema,
                new.schema,
                Direction.INPUT,
                f"{child.location}.schema",
            ))

        child.changes.extend(self.context.extensions.compare(
            old.extensions,
            new.extensions,
            ExtensionContext(child.location, NodeKind.PARAMETER, Direction.INPUT),
        ))

        return child
