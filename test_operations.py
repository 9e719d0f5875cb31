"""Tests for operation, parameter and response comparison."""

import pytest
from apidiff import (
    ChangeKind,
    DiffEngine,
    Direction,
    EngineConfig,
    ExtensionRegistry,
    SpecificationLoader,
    Verdict,
)
from apidiff.context import ComparisonContext
from apidiff.document import Parameter, Schema, Specification
from apidiff.parameters import ParameterDiffer


def op_doc(operation, path="/items", method="get", **extra):
    operation.setdefault("responses", {"200": {"description": "OK"}})
    doc = {"openapi": "3.0.3", "paths": {path: {method: operation}}}
    doc.update(extra)
    return doc


def diff(old_doc, new_doc):
    loader = SpecificationLoader()
    return DiffEngine().compare(
        loader.load_dict(old_doc, "old"), "old",
        loader.load_dict(new_doc, "new"), "new",
    )


def findings(result):
    return [(e.kind, e.verdict) for e in result.entries()]


def query(name, required=False, **schema):
    return {"name": name, "in": "query", "required": required, "schema": schema or {"type": "string"}}


class TestParameters:
    """Test parameter set comparison."""

    def test_required_parameter_added(self):
        """Test adding a required parameter breaks."""
        result = diff(op_doc({}), op_doc({"parameters": [query("q", required=True)]}))
        assert findings(result) == [(ChangeKind.PARAMETER_ADDED, Verdict.BREAKING)]

    def test_optional_parameter_added(self):
        """Test adding an optional parameter is compatible."""
        result = diff(op_doc({}), op_doc({"parameters": [query("q")]}))
        assert findings(result) == [(ChangeKind.PARAMETER_ADDED, Verdict.COMPATIBLE)]

    def test_optional_parameter_removed(self):
        """Test removing an optional parameter is compatible."""
        result = diff(op_doc({"parameters": [query("q")]}), op_doc({}))
        assert findings(result) == [(ChangeKind.PARAMETER_REMOVED, Verdict.COMPATIBLE)]

    def test_location_changed(self):
        """Test moving a parameter is one breaking change."""
        old = op_doc({"parameters": [query("token")]})
        new = op_doc({"parameters": [{"name": "token", "in": "header", "schema": {"type": "string"}}]})

        result = diff(old, new)
        assert findings(result) == [(ChangeKind.PARAMETER_LOCATION_CHANGED, Verdict.BREAKING)]

    def test_required_toggled(self):
        """Test making a parameter required breaks and the reverse does not."""
        optional = op_doc({"parameters": [query("q")]})
        required = op_doc({"parameters": [query("q", required=True)]})

        assert findings(diff(optional, required)) == [(ChangeKind.REQUIRED_CHANGED, Verdict.BREAKING)]
        assert findings(diff(required, optional)) == [(ChangeKind.REQUIRED_CHANGED, Verdict.COMPATIBLE)]

    def test_schema_compared_as_input(self):
        """Test parameter schemas use the input direction."""
        old = op_doc({"parameters": [query("limit", type="integer", maximum=100)]})
        new = op_doc({"parameters": [query("limit", type="integer", maximum=50)]})

        entries = list(diff(old, new).entries())
        assert len(entries) == 1
        assert entries[0].kind == ChangeKind.CONSTRAINT_NARROWED
        assert entries[0].direction == Direction.INPUT
        assert entries[0].verdict == Verdict.BREAKING
        assert "@.name=='limit'" in entries[0].location

    def test_deprecated(self):
        """Test deprecating a parameter is compatible."""
        old = op_doc({"parameters": [query("q")]})
        param = query("q")
        param["deprecated"] = True
        new = op_doc({"parameters": [param]})
        assert findings(diff(old, new)) == [(ChangeKind.DEPRECATED, Verdict.COMPATIBLE)]

    def test_path_level_parameters(self):
        """Test path-level parameters apply to every operation."""
        old = {"openapi": "3.0.3", "paths": {"/items": {
            "parameters": [query("tenant", required=True)],
            "get": {"responses": {"200": {"description": "OK"}}},
        }}}
        new = op_doc({"parameters": [query("tenant", required=True)]})
        assert diff(old, new).is_unchanged()

    def test_renamed_path_variable(self):
        """Test path variable renames pair the parameters."""
        context = ComparisonContext(
            old=Specification(name="old"),
            new=Specification(name="new"),
            config=EngineConfig(),
            extensions=ExtensionRegistry.default(),
        )
        old = [Parameter("id", "path", required=True, schema=Schema(type="string"))]
        new = [Parameter("userId", "path", required=True, schema=Schema(type="string"))]
        differ = ParameterDiffer(context)

        assert differ.diff(old, new, "$", {"id": "userId"}).is_unchanged()
        assert differ.diff(old, new, "$").verdict == Verdict.BREAKING


class TestRequestBody:
    """Test request body comparison."""

    def body(self, schema=None, required=False, media_type="application/json"):
        return {
            "required": required,
            "content": {media_type: {"schema": schema or {"type": "object"}}},
        }

    def test_required_body_added(self):
        """Test adding a required body breaks."""
        result = diff(op_doc({}, method="post"), op_doc({"requestBody": self.body(required=True)}, method="post"))
        assert findings(result) == [(ChangeKind.REQUEST_BODY_ADDED, Verdict.BREAKING)]

    def test_optional_body_added(self):
        """Test adding an optional body is compatible."""
        result = diff(op_doc({}, method="post"), op_doc({"requestBody": self.body()}, method="post"))
        assert findings(result) == [(ChangeKind.REQUEST_BODY_ADDED, Verdict.COMPATIBLE)]

    def test_body_removed(self):
        """Test removing a body is compatible."""
        result = diff(op_doc({"requestBody": self.body()}, method="post"), op_doc({}, method="post"))
        assert findings(result) == [(ChangeKind.REQUEST_BODY_REMOVED, Verdict.COMPATIBLE)]

    def test_body_made_required(self):
        """Test requiring a body breaks."""
        result = diff(
            op_doc({"requestBody": self.body()}, method="post"),
            op_doc({"requestBody": self.body(required=True)}, method="post"),
        )
        assert findings(result) == [(ChangeKind.REQUIRED_CHANGED, Verdict.BREAKING)]

    def test_media_type_changes(self):
        """Test removing a media type breaks and adding one does not."""
        old = op_doc({"requestBody": self.body()}, method="post")
        new = op_doc({"requestBody": self.body(media_type="application/xml")}, method="post")

        assert set(findings(diff(old, new))) == {
            (ChangeKind.MEDIA_TYPE_REMOVED, Verdict.BREAKING),
            (ChangeKind.MEDIA_TYPE_ADDED, Verdict.COMPATIBLE),
        }

    def test_body_reference(self):
        """Test request bodies behind $ref are resolved."""
        components = {"requestBodies": {"Item": self.body({"type": "object", "properties": {
            "name": {"type": "string"}
        }})}}
        old = op_doc({"requestBody": {"$ref": "#/components/requestBodies/Item"}},
                     method="post", components=components)
        new = op_doc({"requestBody": self.body({"type": "object", "properties": {
            "name": {"type": "string"}
        }})}, method="post")
        assert diff(old, new).is_unchanged()


class TestResponses:
    """Test response comparison."""

    def test_response_added(self):
        """Test adding a status code is compatible."""
        old = op_doc({})
        new = op_doc({"responses": {"200": {"description": "OK"}, "404": {"description": "Missing"}}})
        assert findings(diff(old, new)) == [(ChangeKind.RESPONSE_ADDED, Verdict.COMPATIBLE)]

    def test_status_ranges_normalized(self):
        """Test status range keys compare case-insensitively."""
        old = op_doc({"responses": {"2xx": {"description": "OK"}}})
        new = op_doc({"responses": {"2XX": {"description": "OK"}}})
        assert diff(old, new).is_unchanged()

    def test_numeric_status_keys(self):
        """Test integer status keys from YAML match string keys."""
        old = op_doc({"responses": {200: {"description": "OK"}}})
        new = op_doc({"responses": {"200": {"description": "OK"}}})
        assert diff(old, new).is_unchanged()

    def test_headers(self):
        """Test response header removal breaks and addition does not."""
        old = op_doc({"responses": {"200": {
            "description": "OK",
            "headers": {"X-Rate-Limit": {"schema": {"type": "integer"}}},
        }}})
        new = op_doc({"responses": {"200": {
            "description": "OK",
            "headers": {"X-Request-Id": {"schema": {"type": "string"}}},
        }}})

        assert set(findings(diff(old, new))) == {
            (ChangeKind.HEADER_REMOVED, Verdict.BREAKING),
            (ChangeKind.HEADER_ADDED, Verdict.COMPATIBLE),
        }

    def test_header_names_case_insensitive(self):
        """Test header names are matched case-insensitively."""
        old = op_doc({"responses": {"200": {
            "description": "OK", "headers": {"ETag": {"schema": {"type": "string"}}},
        }}})
        new = op_doc({"responses": {"200": {
            "description": "OK", "headers": {"etag": {"schema": {"type": "string"}}},
        }}})
        assert diff(old, new).is_unchanged()

    def test_header_schema_is_output(self):
        """Test header schemas use the output direction."""
        old = op_doc({"responses": {"200": {
            "description": "OK", "headers": {"X-Count": {"schema": {"type": "integer", "maximum": 10}}},
        }}})
        new = op_doc({"responses": {"200": {
            "description": "OK", "headers": {"X-Count": {"schema": {"type": "integer", "maximum": 100}}},
        }}})
        entries = list(diff(old, new).entries())
        assert [(e.kind, e.verdict, e.direction) for e in entries] == [
            (ChangeKind.CONSTRAINT_WIDENED, Verdict.BREAKING, Direction.OUTPUT)
        ]


class TestSecurity:
    """Test security requirement comparison."""

    schemes = {"securitySchemes": {
        "apiKey": {"type": "apiKey", "in": "header", "name": "X-Key"},
        "oauth": {"type": "oauth2", "flows": {}},
    }}

    def test_requirement_added(self):
        """Test adding a requirement breaks."""
        old = op_doc({}, components=self.schemes)
        new = op_doc({"security": [{"apiKey": []}]}, components=self.schemes)
        assert findings(diff(old, new)) == [(ChangeKind.SECURITY_ADDED, Verdict.BREAKING)]

    def test_requirement_removed(self):
        """Test removing a requirement is compatible."""
        old = op_doc({"security": [{"apiKey": []}, {"oauth": ["read"]}]}, components=self.schemes)
        new = op_doc({"security": [{"apiKey": []}]}, components=self.schemes)
        assert findings(diff(old, new)) == [(ChangeKind.SECURITY_REMOVED, Verdict.COMPATIBLE)]

    def test_inherited_requirements(self):
        """Test operations inherit the document requirements."""
        old = op_doc({}, components=self.schemes, security=[{"apiKey": []}])
        new = op_doc({"security": [{"apiKey": []}]}, components=self.schemes)
        assert diff(old, new).is_unchanged()

    def test_scope_order_ignored(self):
        """Test scope order does not matter."""
        old = op_doc({"security": [{"oauth": ["read", "write"]}]}, components=self.schemes)
        new = op_doc({"security": [{"oauth": ["write", "read"]}]}, components=self.schemes)
        assert diff(old, new).is_unchanged()

    def test_anonymous_access_removed(self):
        """Test an explicit empty requirement list opts out of security."""
        old = op_doc({"security": []}, components=self.schemes, security=[{"apiKey": []}])
        new = op_doc({}, components=self.schemes, security=[{"apiKey": []}])
        assert findings(diff(old, new)) == [(ChangeKind.SECURITY_ADDED, Verdict.BREAKING)]


class TestOperationAttributes:
    """Test operation-level flags and extensions."""

    def test_deprecated(self):
        """Test deprecating an operation is compatible."""
        result = diff(op_doc({}), op_doc({"deprecated": True}))
        assert findings(result) == [(ChangeKind.DEPRECATED, Verdict.COMPATIBLE)]

    @pytest.mark.parametrize("old_ext,new_ext,kind", [
        ({}, {"x-rate-limit": 10}, ChangeKind.EXTENSION_ADDED),
        ({"x-rate-limit": 10}, {}, ChangeKind.EXTENSION_REMOVED),
        ({"x-rate-limit": 10}, {"x-rate-limit": 20}, ChangeKind.EXTENSION_CHANGED),
    ])
    def test_extensions(self, old_ext, new_ext, kind):
        """Test operation extensions are reported as compatible."""
        result = diff(op_doc(dict(old_ext)), op_doc(dict(new_ext)))
        entries = list(result.entries())
        assert [(e.kind, e.verdict, e.extension) for e in entries] == [
            (kind, Verdict.COMPATIBLE, "x-rate-limit")
        ]
