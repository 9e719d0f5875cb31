"""Comparison of a single HTTP operation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .document import Header, MediaType, Operation, RequestBody, Response, Specification
from .extensions import ExtensionContext
from .models import ChangeKind, ChangeSet, Direction, NodeKind, Verdict
from .parameters import ParameterDiffer
from .utils import build_path, normalize_status

if TYPE_CHECKING:
    from .context import ComparisonContext

logger = logging.getLogger(__name__)


def _requirements(spec: Specification, operation: Operation) -> list[tuple]:
    """Effective security requirements as hashable, order-free tuples."""
    raw = operation.security if operation.security is not None else spec.security
    result = []
    for requirement in raw:
        normalized = tuple(sorted(
            (scheme, tuple(sorted(scopes or []))) for scheme, scopes in requirement.items()
        ))
        if normalized not in result:
            result.append(normalized)
    return result


def _format_requirement(requirement: tuple) -> str:
    if not requirement:
        return "anonymous access"
    parts = []
    for scheme, scopes in requirement:
        parts.append(f"{scheme}[{', '.join(scopes)}]" if scopes else scheme)
    return " + ".join(parts)


class OperationDiffer:
    """
    Diffs one matched (path, method) pair.

    Request parameters and bodies are compared as input; response bodies
    and headers as output.
    """

    def __init__(self, context: ComparisonContext):
        self.context = context
        self.parameters = ParameterDiffer(context)

    def diff(
        self,
        old: Operation,
        new: Operation,
        location: str,
        renames: Optional[dict[str, str]] = None
    ) -> ChangeSet:
        """
        Compare two operations.

        Args:
            old: Operation from the old document
            new: Operation from the new document
            location: Location of the operation
            renames: Old path variable name -> new path variable name

        Returns:
            ChangeSet for the operation
        """
        node = ChangeSet(
            element=f"{new.method.upper()} {new.path}",
            kind=NodeKind.OPERATION,
            location=location,
        )

        node.add_child(self.parameters.diff(
            old.parameters, new.parameters, build_path(location, "parameters"), renames
        ))
        node.add_child(self._diff_request_body(
            old.request_body, new.request_body, build_path(location, "requestBody")
        ))
        node.add_child(self._diff_responses(
            old.responses, new.responses, build_path(location, "responses")
        ))
        node.add_child(self._diff_security(old, new, build_path(location, "security")))

        if old.deprecated != new.deprecated:
            node.add_change(
                ChangeKind.DEPRECATED,
                Verdict.COMPATIBLE,
                "Operation deprecated" if new.deprecated else "Operation no longer deprecated",
                old_value=old.deprecated,
                new_value=new.deprecated,
            )

        node.changes.extend(self.context.extensions.compare(
            old.extensions,
            new.extensions,
            ExtensionContext(location, NodeKind.OPERATION),
        ))

        logger.debug("Compared %s: %s", node.element, node.verdict.label)
        return node

    def _diff_request_body(
        self,
        old: Optional[RequestBody],
        new: Optional[RequestBody],
        location: str
    ) -> ChangeSet:
        node = ChangeSet(element="requestBody", kind=NodeKind.REQUEST_BODY, location=location)

        if old is None and new is None:
            return node

        if old is None:
            node.add_change(
                ChangeKind.REQUEST_BODY_ADDED,
                Verdict.BREAKING if new.required else Verdict.COMPATIBLE,
                f"{'Required' if new.required else 'Optional'} request body added",
                direction=Direction.INPUT,
            )
            return node

        if new is None:
            node.add_change(
                ChangeKind.REQUEST_BODY_REMOVED,
                Verdict.COMPATIBLE,
                "Request body removed",
                direction=Direction.INPUT,
            )
            return node

        if old.required != new.required:
            node.add_change(
                ChangeKind.REQUIRED_CHANGED,
                Verdict.BREAKING if new.required else Verdict.COMPATIBLE,
                f"Request body is {'now' if new.required else 'no longer'} required",
                old_value=old.required,
                new_value=new.required,
                direction=Direction.INPUT,
            )

        self._diff_content(old.content, new.content, Direction.INPUT, node)
        node.changes.extend(self.context.extensions.compare(
            old.extensions,
            new.extensions,
            ExtensionContext(location, NodeKind.REQUEST_BODY, Direction.INPUT),
        ))
        return node

    def _diff_content(
        self,
        old: dict[str, MediaType],
        new: dict[str, MediaType],
        direction: Direction,
        node: ChangeSet
    ):
        """Compare media type maps of a request body or response."""
        base = build_path(node.location, "content")

        for media_type, old_media in old.items():
            location = build_path(base, media_type)
            child = ChangeSet(element=media_type, kind=NodeKind.MEDIA_TYPE, location=location)

            if media_type not in new:
                child.add_change(
                    ChangeKind.MEDIA_TYPE_REMOVED,
                    Verdict.BREAKING,
                    f"Media type {media_type} removed",
                    old_value=media_type,
                    direction=direction,
                )
            else:
                new_media = new[media_type]
                child.add_child(self.context.schemas.diff(
                    old_media.schema,
                    new_media.schema,
                    direction,
                    build_path(location, "schema"),
                ))
                child.changes.extend(self.context.extensions.compare(
                    old_media.extensions,
                    new_media.extensions,
                    ExtensionContext(location, NodeKind.MEDIA_TYPE, direction),
                ))
            node.add_child(child)

        for media_type in new:
            if media_type in old:
                continue
            child = ChangeSet(
                element=media_type,
                kind=NodeKind.MEDIA_TYPE,
                location=build_path(base, media_type),
            )
            child.add_change(
                ChangeKind.MEDIA_TYPE_ADDED,
                Verdict.COMPATIBLE,
                f"Media type {media_type} added",
                new_value=media_type,
                direction=direction,
            )
            node.add_child(child)

    def _diff_responses(
        self,
        old: dict[str, Response],
        new: dict[str, Response],
        location: str
    ) -> ChangeSet:
        node = ChangeSet(element="responses", kind=NodeKind.RESPONSES, location=location)
        old_map = {normalize_status(status): response for status, response in old.items()}
        new_map = {normalize_status(status): response for status, response in new.items()}

        for status, old_response in old_map.items():
            child = ChangeSet(
                element=status,
                kind=NodeKind.RESPONSE,
                location=build_path(location, status),
            )
            if status not in new_map:
                child.add_change(
                    ChangeKind.RESPONSE_REMOVED,
                    Verdict.BREAKING,
                    f"Response {status} removed",
                    old_value=status,
                    direction=Direction.OUTPUT,
                )
            else:
                self._diff_response(old_response, new_map[status], child)
            node.add_child(child)

        for status in new_map:
            if status in old_map:
                continue
            child = ChangeSet(
                element=status,
                kind=NodeKind.RESPONSE,
                location=build_path(location, status),
            )
            child.add_change(
                ChangeKind.RESPONSE_ADDED,
                Verdict.COMPATIBLE,
                f"Response {status} added",
                new_value=status,
                direction=Direction.OUTPUT,
            )
            node.add_child(child)

        return node

    def _diff_response(self, old: Response, new: Response, node: ChangeSet):
        self._diff_content(old.content, new.content, Direction.OUTPUT, node)

        old_headers = {name.lower(): header for name, header in old.headers.items()}
        new_headers = {name.lower(): header for name, header in new.headers.items()}
        base = build_path(node.location, "headers")

        for name, old_header in old_headers.items():
            child = ChangeSet(element=old_header.name, kind=NodeKind.HEADER, location=build_path(base, name))
            if name not in new_headers:
                child.add_change(
                    ChangeKind.HEADER_REMOVED,
                    Verdict.BREAKING,
                    f"Response header {old_header.name} removed",
                    old_value=old_header.name,
                    direction=Direction.OUTPUT,
                )
            else:
                self._diff_header(old_header, new_headers[name], child)
            node.add_child(child)

        for name, new_header in new_headers.items():
            if name in old_headers:
                continue
            child = ChangeSet(element=new_header.name, kind=NodeKind.HEADER, location=build_path(base, name))
            child.add_change(
                ChangeKind.HEADER_ADDED,
                Verdict.COMPATIBLE,
                f"Response header {new_header.name} added",
                new_value=new_header.name,
                direction=Direction.OUTPUT,
            )
            node.add_child(child)

        node.changes.extend(self.context.extensions.compare(
            old.extensions,
            new.extensions,
            ExtensionContext(node.location, NodeKind.RESPONSE, Direction.OUTPUT),
        ))

    def _diff_header(self, old: Header, new: Header, node: ChangeSet):
        if old.required != new.required:
            # clients may rely on a header the server always sent
            node.add_change(
                ChangeKind.REQUIRED_CHANGED,
                Verdict.BREAKING if old.required else Verdict.COMPATIBLE,
                f"Response header {new.name} is {'now' if new.required else 'no longer'} required",
                old_value=old.required,
                new_value=new.required,
                direction=Direction.OUTPUT,
            )
        if old.deprecated != new.deprecated:
            node.add_change(
                ChangeKind.DEPRECATED,
                Verdict.COMPATIBLE,
                f"Response header {new.name} {'deprecated' if new.deprecated else 'no longer deprecated'}",
                old_value=old.deprecated,
                new_value=new.deprecated,
            )
        if old.schema is not None or new.schema is not None:
            node.add_child(self.context.schemas.diff(
                old.schema, new.schema, Direction.OUTPUT, build_path(node.location, "schema")
            ))

    def _diff_security(self, old: Operation, new: Operation, location: str) -> ChangeSet:
        """Compare effective security requirements as sets."""
        node = ChangeSet(element="security", kind=NodeKind.SECURITY, location=location)
        old_requirements = _requirements(self.context.old, old)
        new_requirements = _requirements(self.context.new, new)

        for requirement in old_requirements:
            if requirement not in new_requirements:
                node.add_change(
                    ChangeKind.SECURITY_REMOVED,
                    Verdict.COMPATIBLE,
                    f"Security requirement {_format_requirement(requirement)} removed",
                    old_value=_format_requirement(requirement),
                    direction=Direction.INPUT,
                )

        for requirement in new_requirements:
            if requirement not in old_requirements:
                node.add_change(
                    ChangeKind.SECURITY_ADDED,
                    Verdict.BREAKING,
                    f"Security requirement {_format_requirement(requirement)} added",
                    new_value=_format_requirement(requirement),
                    direction=Direction.INPUT,
                )

        return node
