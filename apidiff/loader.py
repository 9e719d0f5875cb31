"""Reading OpenAPI / Swagger documents into the document model."""

from __future__ import annotations

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

import yaml

from .diagnostics import DiagnosticPolicy, DocumentIssue, get_policy, log_issues
from .document import (
    HTTP_METHODS,
    PARAMETER_LOCATIONS,
    Header,
    MediaType,
    Operation,
    Parameter,
    PathItem,
    RequestBody,
    Response,
    Schema,
    SecurityScheme,
    Specification,
)
from .exceptions import ConfigError, DocumentParseError
from .jsonpath_utils import JSONPathMatcher
from .models import EngineConfig

logger = logging.getLogger(__name__)

SCHEMA_PREFIXES = ("#/components/schemas/", "#/definitions/")

DEFAULT_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"

# Keys of a Swagger 2.0 non-body parameter that describe its value
_INLINE_SCHEMA_KEYS = (
    "type", "format", "items", "enum", "default", "minimum", "maximum",
    "exclusiveMinimum", "exclusiveMaximum", "minLength", "maxLength",
    "pattern", "minItems", "maxItems",
)


def _pointer(parent: str, key: Any) -> str:
    """Append a JSON pointer token."""
    token = str(key).replace('~', '~0').replace('/', '~1')
    return f"{parent}/{token}"


def _extensions(node: dict) -> dict:
    return {k: v for k, v in node.items() if isinstance(k, str) and k.startswith('x-')}


class SpecificationLoader:
    """
    Loads documents from files or mappings.

    Usage:
        loader = SpecificationLoader()
        spec = loader.load("openapi.yaml")

    Issues found while building the model are handed to the diagnostic
    policy once per document; the default policy logs them and keeps
    going with a best-effort model.
    """

    def __init__(
        self,
        policy: Optional[DiagnosticPolicy] = None,
        ignore_paths: Optional[list[str]] = None
    ):
        """
        Initialize the loader.

        Args:
            policy: Called with (location, issues) when a document has issues
            ignore_paths: JSONPath expressions removed from documents before loading
        """
        self.policy = policy or log_issues
        self.ignore_paths = list(ignore_paths or [])

        for path in self.ignore_paths:
            try:
                JSONPathMatcher.compile(path)
            except ValueError as e:
                raise ConfigError("ignore_paths", str(e))

    @classmethod
    def from_config(cls, config: EngineConfig) -> SpecificationLoader:
        return cls(get_policy(config.diagnostic_mode), config.ignore_paths)

    def load(self, location: str | Path, name: Optional[str] = None) -> Specification:
        """Load a YAML or JSON document from disk."""
        path = Path(location)
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            content = f.read()

        # JSON is valid YAML
        try:
            raw = yaml.safe_load(content)
        except yaml.YAMLError as e:
            mark = getattr(e, 'problem_mark', None)
            raise DocumentParseError(
                str(path),
                str(e),
                line=mark.line + 1 if mark else None,
                column=mark.column + 1 if mark else None,
            )

        return self.load_dict(raw, name=name or path.stem, location=str(path))

    def load_dict(
        self,
        raw: Any,
        name: str = "<memory>",
        location: Optional[str] = None
    ) -> Specification:
        """Build a Specification from an already parsed mapping."""
        location = location or name
        if not isinstance(raw, dict):
            raise DocumentParseError(location, "document root must be a mapping")

        raw = deepcopy(raw)
        if self.ignore_paths:
            deleted = JSONPathMatcher.delete_paths(raw, self.ignore_paths)
            logger.debug("Ignored %d node(s) in %s", deleted, location)

        spec = _DocumentBuilder(raw, name).build()
        if spec.issues:
            self.policy(location, spec.issues)
        return spec


class _DocumentBuilder:
    """Turns one raw document into the document model."""

    def __init__(self, raw: dict, name: str):
        self.raw = raw
        self.name = name
        self.issues: list[DocumentIssue] = []
        self.swagger = str(raw.get('swagger', '')).startswith('2')
        self.consumes = raw.get('consumes') or [DEFAULT_MEDIA_TYPE]
        self.produces = raw.get('produces') or [DEFAULT_MEDIA_TYPE]
        self._schema_refs: list[tuple[str, str]] = []

    def issue(self, pointer: str, message: str):
        self.issues.append(DocumentIssue(pointer or "#", message))

    def mapping(self, node: Any, pointer: str, label: str) -> dict:
        if node is None:
            return {}
        if not isinstance(node, dict):
            self.issue(pointer, f"{label} must be a mapping")
            return {}
        return node

    def build(self) -> Specification:
        raw = self.raw
        if 'openapi' not in raw and not self.swagger:
            self.issue("#", "missing 'openapi' version field")

        if self.swagger:
            raw_schemas, schemas_ptr = raw.get('definitions') or {}, "#/definitions"
            raw_schemes, schemes_ptr = raw.get('securityDefinitions') or {}, "#/securityDefinitions"
        else:
            components = self.mapping(raw.get('components'), "#/components", "'components'")
            raw_schemas, schemas_ptr = components.get('schemas') or {}, "#/components/schemas"
            raw_schemes, schemes_ptr = components.get('securitySchemes') or {}, "#/components/securitySchemes"

        spec = Specification(name=self.name, extensions=_extensions(raw))
        spec.schemas = {
            name: self.schema(node, _pointer(schemas_ptr, name))
            for name, node in self.mapping(raw_schemas, schemas_ptr, "named schemas").items()
        }
        spec.security_schemes = self.security_schemes(raw_schemes, schemes_ptr)
        spec.security = self.security(raw.get('security'), "#/security") or []

        paths = raw.get('paths')
        if paths is None:
            self.issue("#", "missing 'paths' object")
        elif not isinstance(paths, dict):
            self.issue("#/paths", "'paths' must be a mapping")
        else:
            for template, item in paths.items():
                if str(template).startswith('x-'):
                    continue
                path_item = self.path_item(str(template), item, _pointer("#/paths", template))
                if path_item is not None:
                    spec.paths[path_item.template] = path_item

        for pointer, ref in self._schema_refs:
            if ref not in spec.schemas:
                self.issue(pointer, f"schema reference '{ref}' cannot be resolved")

        spec.issues = self.issues
        return spec

    def deref(self, node: Any, pointer: str) -> Optional[dict]:
        """Resolve local $refs of non-schema objects by JSON pointer."""
        seen = []
        while isinstance(node, dict) and '$ref' in node:
            ref = node['$ref']
            if not isinstance(ref, str) or not ref.startswith('#/'):
                self.issue(pointer, f"external reference '{ref}' is not supported")
                return None
            if ref in seen:
                self.issue(pointer, f"circular reference '{ref}'")
                return None
            seen.append(ref)

            node = self.raw
            for part in ref[2:].split('/'):
                # Handle JSON pointer escaping
                part = part.replace('~1', '/').replace('~0', '~')
                if isinstance(node, dict) and part in node:
                    node = node[part]
                else:
                    self.issue(pointer, f"reference '{ref}' cannot be resolved")
                    return None

        if not isinstance(node, dict):
            self.issue(pointer, "expected a mapping")
            return None
        return node

    def schema(self, node: Any, pointer: str) -> Schema:
        """Build a Schema; references become named stubs."""
        if not isinstance(node, dict):
            self.issue(pointer, "schema must be a mapping")
            return Schema()

        if '$ref' in node:
            ref = str(node['$ref'])
            for prefix in SCHEMA_PREFIXES:
                if ref.startswith(prefix) and '/' not in ref[len(prefix):]:
                    name = ref[len(prefix):].replace('~1', '/').replace('~0', '~')
                    self._schema_refs.append((pointer, name))
                    return Schema(ref=name)
            self.issue(pointer, f"unsupported schema reference '{ref}'")
            return Schema(ref=ref)

        schema = Schema(
            format=node.get('format'),
            nullable=bool(node.get('nullable') or node.get('x-nullable')),
            minimum=node.get('minimum'),
            maximum=node.get('maximum'),
            exclusive_minimum=node.get('exclusiveMinimum'),
            exclusive_maximum=node.get('exclusiveMaximum'),
            min_length=node.get('minLength'),
            max_length=node.get('maxLength'),
            pattern=node.get('pattern'),
            min_items=node.get('minItems'),
            max_items=node.get('maxItems'),
            default=node.get('default'),
            has_default='default' in node,
            deprecated=bool(node.get('deprecated', False)),
            extensions=_extensions(node),
        )

        raw_type = node.get('type')
        if isinstance(raw_type, list):
            # OpenAPI 3.1 type arrays
            types = [t for t in raw_type if t != 'null']
            schema.nullable = schema.nullable or 'null' in raw_type
            if len(types) == 1:
                schema.type = types[0]
            else:
                schema.any_of = [Schema(type=t) for t in types]
        else:
            schema.type = raw_type

        properties = node.get('properties') or {}
        if isinstance(properties, dict):
            base = _pointer(pointer, 'properties')
            schema.properties = {
                name: self.schema(prop, _pointer(base, name))
                for name, prop in properties.items()
            }
        else:
            self.issue(_pointer(pointer, 'properties'), "'properties' must be a mapping")

        required = node.get('required') or []
        if isinstance(required, list):
            schema.required = [str(r) for r in required]
        else:
            self.issue(_pointer(pointer, 'required'), "'required' must be a list")

        if 'items' in node:
            schema.items = self.schema(node['items'], _pointer(pointer, 'items'))

        additional = node.get('additionalProperties', True)
        if isinstance(additional, dict):
            schema.additional_properties = self.schema(additional, _pointer(pointer, 'additionalProperties'))
        else:
            schema.additional_properties = bool(additional)

        for keyword, attr in (("oneOf", "one_of"), ("anyOf", "any_of"), ("allOf", "all_of")):
            branches = node.get(keyword)
            if branches is None:
                continue
            if not isinstance(branches, list):
                self.issue(_pointer(pointer, keyword), f"'{keyword}' must be a list")
                continue
            base = _pointer(pointer, keyword)
            setattr(schema, attr, [self.schema(b, _pointer(base, i)) for i, b in enumerate(branches)])

        enum = node.get('enum')
        if enum is not None:
            if isinstance(enum, list):
                schema.enum = list(enum)
            else:
                self.issue(_pointer(pointer, 'enum'), "'enum' must be a list")

        return schema

    def security_schemes(self, raw: Any, pointer: str) -> dict[str, SecurityScheme]:
        if not isinstance(raw, dict):
            self.issue(pointer, "security schemes must be a mapping")
            return {}

        schemes = {}
        for name, node in raw.items():
            node = self.deref(node, _pointer(pointer, name))
            if node is None:
                continue
            schemes[name] = SecurityScheme(
                name=name,
                type=node.get('type'),
                location=node.get('in'),
                parameter_name=node.get('name'),
                scheme=node.get('scheme'),
            )
        return schemes

    def security(self, raw: Any, pointer: str) -> Optional[list[dict[str, list[str]]]]:
        if raw is None:
            return None
        if not isinstance(raw, list):
            self.issue(pointer, "'security' must be a list")
            return None

        requirements = []
        for i, requirement in enumerate(raw):
            if not isinstance(requirement, dict):
                self.issue(_pointer(pointer, i), "security requirement must be a mapping")
                continue
            requirements.append({
                str(scheme): [str(s) for s in (scopes or [])]
                for scheme, scopes in requirement.items()
            })
        return requirements

    def path_item(self, template: str, node: Any, pointer: str) -> Optional[PathItem]:
        node = self.deref(node, pointer)
        if node is None:
            return None

        item = PathItem(template=template, extensions=_extensions(node))
        shared = self.parameters(node.get('parameters'), _pointer(pointer, 'parameters'))

        for method in HTTP_METHODS:
            if method not in node:
                continue
            op_pointer = _pointer(pointer, method)
            raw_operation = node[method]
            if not isinstance(raw_operation, dict):
                self.issue(op_pointer, "operation must be a mapping")
                continue
            item.operations[method] = self.operation(method, template, raw_operation, op_pointer, shared)

        return item

    def parameters(self, raw: Any, pointer: str) -> list[Parameter]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            self.issue(pointer, "'parameters' must be a list")
            return []

        result = []
        allowed = PARAMETER_LOCATIONS + (("body", "formData") if self.swagger else ())
        for i, node in enumerate(raw):
            param_pointer = _pointer(pointer, i)
            node = self.deref(node, param_pointer)
            if node is None:
                continue

            name = node.get('name')
            location = node.get('in')
            if not name:
                self.issue(param_pointer, "parameter without a name")
                continue
            if location not in allowed:
                self.issue(param_pointer, f"unknown parameter location '{location}'")
                continue

            if 'schema' in node:
                schema = self.schema(node['schema'], _pointer(param_pointer, 'schema'))
            elif 'content' in node and isinstance(node['content'], dict) and node['content']:
                media = next(iter(node['content'].values())) or {}
                schema = self.schema(media.get('schema', {}), _pointer(param_pointer, 'content'))
            elif self.swagger:
                inline = {k: node[k] for k in _INLINE_SCHEMA_KEYS if k in node}
                schema = self.schema(inline, param_pointer)
            else:
                schema = None

            result.append(Parameter(
                name=str(name),
                location=location,
                required=bool(node.get('required', False)) or location == "path",
                schema=schema,
                deprecated=bool(node.get('deprecated', False)),
                extensions=_extensions(node),
            ))
        return result

    def operation(
        self,
        method: str,
        template: str,
        node: dict,
        pointer: str,
        shared: list[Parameter]
    ) -> Operation:
        own = self.parameters(node.get('parameters'), _pointer(pointer, 'parameters'))
        own_keys = {p.key for p in own}
        parameters = [p for p in shared if p.key not in own_keys] + own

        operation = Operation(
            method=method,
            path=template,
            operation_id=node.get('operationId'),
            parameters=[p for p in parameters if p.location in PARAMETER_LOCATIONS],
            security=self.security(node.get('security'), _pointer(pointer, 'security')),
            deprecated=bool(node.get('deprecated', False)),
            extensions=_extensions(node),
        )

        if self.swagger:
            operation.request_body = self.swagger_body(
                [p for p in parameters if p.location in ("body", "formData")],
                node.get('consumes') or self.consumes,
            )
        elif 'requestBody' in node:
            body_pointer = _pointer(pointer, 'requestBody')
            body = self.deref(node['requestBody'], body_pointer)
            if body is not None:
                operation.request_body = RequestBody(
                    required=bool(body.get('required', False)),
                    content=self.content(body.get('content'), _pointer(body_pointer, 'content')),
                    extensions=_extensions(body),
                )

        responses = node.get('responses')
        responses_pointer = _pointer(pointer, 'responses')
        if responses is None:
            self.issue(pointer, "operation has no 'responses'")
        elif not isinstance(responses, dict):
            self.issue(responses_pointer, "'responses' must be a mapping")
        else:
            produces = node.get('produces') or self.produces
            for status, raw_response in responses.items():
                if str(status).startswith('x-'):
                    continue
                response = self.response(
                    str(status), raw_response, _pointer(responses_pointer, status), produces
                )
                if response is not None:
                    operation.responses[response.status] = response

        return operation

    def swagger_body(self, params: list[Parameter], consumes: list[str]) -> Optional[RequestBody]:
        """Fold Swagger 2.0 body / formData parameters into a request body."""
        body = [p for p in params if p.location == "body"]
        form = [p for p in params if p.location == "formData"]

        if body:
            param = body[0]
            return RequestBody(
                required=param.required,
                content={ct: MediaType(schema=param.schema) for ct in consumes},
                extensions=param.extensions,
            )
        if form:
            schema = Schema(
                type="object",
                properties={p.name: p.schema or Schema() for p in form},
                required=[p.name for p in form if p.required],
            )
            media_types = [ct for ct in consumes if ct.startswith(("multipart/", FORM_MEDIA_TYPE))]
            return RequestBody(
                required=any(p.required for p in form),
                content={ct: MediaType(schema=schema) for ct in media_types or [FORM_MEDIA_TYPE]},
            )
        return None

    def content(self, raw: Any, pointer: str) -> dict[str, MediaType]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            self.issue(pointer, "'content' must be a mapping")
            return {}

        content = {}
        for media_type, node in raw.items():
            node = node or {}
            media_pointer = _pointer(pointer, media_type)
            if not isinstance(node, dict):
                self.issue(media_pointer, "media type must be a mapping")
                continue
            schema = None
            if 'schema' in node:
                schema = self.schema(node['schema'], _pointer(media_pointer, 'schema'))
            content[str(media_type)] = MediaType(schema=schema, extensions=_extensions(node))
        return content

    def response(
        self,
        status: str,
        node: Any,
        pointer: str,
        produces: list[str]
    ) -> Optional[Response]:
        node = self.deref(node, pointer)
        if node is None:
            return None

        response = Response(status=status, extensions=_extensions(node))
        if self.swagger:
            if 'schema' in node:
                schema = self.schema(node['schema'], _pointer(pointer, 'schema'))
                response.content = {ct: MediaType(schema=schema) for ct in produces}
        else:
            response.content = self.content(node.get('content'), _pointer(pointer, 'content'))

        headers = node.get('headers') or {}
        headers_pointer = _pointer(pointer, 'headers')
        if not isinstance(headers, dict):
            self.issue(headers_pointer, "'headers' must be a mapping")
            headers = {}
        for name, raw_header in headers.items():
            header_pointer = _pointer(headers_pointer, name)
            raw_header = self.deref(raw_header, header_pointer)
            if raw_header is None:
                continue
            if 'schema' in raw_header:
                schema = self.schema(raw_header['schema'], _pointer(header_pointer, 'schema'))
            else:
                inline = {k: raw_header[k] for k in _INLINE_SCHEMA_KEYS if k in raw_header}
                schema = self.schema(inline, header_pointer) if inline else None
            response.headers[name] = Header(
                name=name,
                required=bool(raw_header.get('required', False)),
                schema=schema,
                deprecated=bool(raw_header.get('deprecated', False)),
            )

        return response
