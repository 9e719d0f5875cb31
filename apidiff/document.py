"""In-memory model of an API specification document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")


@dataclass(eq=False)
class Schema:
    """
    A type description.

    A schema that aliases a reusable named schema only carries ``ref``; the
    definition lives in ``Specification.schemas`` and is looked up by name,
    so self-referential schemas never form object cycles.
    """
    type: Optional[str] = None
    format: Optional[str] = None
    properties: dict[str, Schema] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    items: Optional[Schema] = None
    additional_properties: Union[bool, Schema] = True
    one_of: list[Schema] = field(default_factory=list)
    any_of: list[Schema] = field(default_factory=list)
    all_of: list[Schema] = field(default_factory=list)
    enum: Optional[list] = None
    nullable: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Union[bool, float, None] = None
    exclusive_maximum: Union[bool, float, None] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    default: Any = None
    has_default: bool = False
    deprecated: bool = False
    extensions: dict[str, Any] = field(default_factory=dict)
    ref: Optional[str] = None

    @property
    def kind(self) -> Optional[str]:
        """Declared type, or the type implied by the keywords present."""
        if self.type:
            return self.type
        if self.properties or isinstance(self.additional_properties, Schema):
            return "object"
        if self.items is not None:
            return "array"
        return None


@dataclass
class Parameter:
    name: str
    location: str
    required: bool = False
    schema: Optional[Schema] = None
    deprecated: bool = False
    extensions: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return self.name, self.location


@dataclass
class MediaType:
    schema: Optional[Schema] = None
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class RequestBody:
    required: bool = False
    content: dict[str, MediaType] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class Header:
    name: str
    required: bool = False
    schema: Optional[Schema] = None
    deprecated: bool = False


@dataclass
class Response:
    status: str
    content: dict[str, MediaType] = field(default_factory=dict)
    headers: dict[str, Header] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class Operation:
    method: str
    path: str
    operation_id: Optional[str] = None
    parameters: list[Parameter] = field(default_factory=list)
    request_body: Optional[RequestBody] = None
    responses: dict[str, Response] = field(default_factory=dict)
    # None inherits the document-level requirements
    security: Optional[list[dict[str, list[str]]]] = None
    deprecated: bool = False
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class PathItem:
    template: str
    operations: dict[str, Operation] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class SecurityScheme:
    name: str
    type: Optional[str] = None
    location: Optional[str] = None
    parameter_name: Optional[str] = None
    scheme: Optional[str] = None


@dataclass
class Specification:
    """A loaded document. The engine treats it as read-only."""
    name: str
    paths: dict[str, PathItem] = field(default_factory=dict)
    schemas: dict[str, Schema] = field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = field(default_factory=dict)
    security: list[dict[str, list[str]]] = field(default_factory=list)
    extensions: dict[str, Any] = field(default_factory=dict)
    issues: list = field(default_factory=list)

    def resolve(self, schema: Optional[Schema]) -> Optional[Schema]:
        """
        Follow named references to the defining schema.

        Returns None when a reference cannot be resolved, including
        references that only point at each other.
        """
        seen = set()
        while schema is not None and schema.ref is not None:
            if schema.ref in seen:
                return None
            seen.add(schema.ref)
            schema = self.schemas.get(schema.ref)
        return schema
