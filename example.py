"""Example usage of the apidiff comparison engine."""

import json
from copy import deepcopy

from apidiff import (
    DiffEngine,
    EngineConfig,
    ExtensionRegistry,
    SpecificationLoader,
    TextRenderer,
    Verdict,
)
from apidiff.models import ChangeEntry, ChangeKind

# Baseline version of a small invoicing API
old_document = {
    "openapi": "3.0.3",
    "info": {"title": "Invoices", "version": "1.0.0"},
    "paths": {
        "/invoices": {
            "get": {
                "parameters": [
                    {"name": "page", "in": "query", "required": True, "schema": {"type": "integer"}},
                ],
                "responses": {
                    "200": {
                        "description": "Invoice list",
                        "content": {"application/json": {"schema": {
                            "type": "array",
                            "items": {"$ref": "#/components/schemas/Invoice"},
                        }}},
                    },
                },
            },
            "post": {
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Invoice"}}},
                },
                "responses": {"201": {"description": "Created"}},
            },
        },
        "/invoices/{id}": {
            "get": {
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {
                    "200": {
                        "description": "One invoice",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Invoice"}}},
                    },
                    "404": {"description": "Not found"},
                },
            },
        },
    },
    "components": {
        "schemas": {
            "Invoice": {
                "type": "object",
                "required": ["id", "total"],
                "properties": {
                    "id": {"type": "string"},
                    "total": {"type": "number", "minimum": 0},
                    "status": {"type": "string", "enum": ["PAID", "PENDING", "VOID"]},
                    "x-internal-notes": {"type": "string"},
                },
                "x-owner": "billing",
            },
        },
    },
}


def revised_document():
    """Next version: renamed path variable, narrower status, new paths."""
    new = deepcopy(old_document)
    paths = new["paths"]

    paths["/invoices/{invoiceId}"] = paths.pop("/invoices/{id}")
    get_one = paths["/invoices/{invoiceId}"]["get"]
    get_one["parameters"][0]["name"] = "invoiceId"
    del get_one["responses"]["404"]

    # page becomes optional
    paths["/invoices"]["get"]["parameters"][0]["required"] = False

    invoice = new["components"]["schemas"]["Invoice"]
    invoice["properties"]["status"]["enum"] = ["PAID", "PENDING"]
    invoice["properties"]["currency"] = {"type": "string", "default": "EUR"}
    invoice["required"].append("currency")
    invoice["x-owner"] = "finance"

    paths["/customers"] = {"get": {"responses": {"200": {"description": "Customers"}}}}
    return new


class OwnerComparator:
    """Treats a change of owning team as something to review."""

    keys = ("x-owner",)

    def compare(self, old_value, new_value, context):
        if old_value == new_value:
            return []
        return [ChangeEntry(
            location=f"{context.location}.x-owner",
            kind=ChangeKind.EXTENSION_CHANGED,
            verdict=Verdict.BREAKING,
            message=f"Owner changed from {old_value} to {new_value}",
            old_value=old_value,
            new_value=new_value,
            direction=context.direction,
            extension="x-owner",
        )]


def main():
    print("=" * 60)
    print("apidiff - Example")
    print("=" * 60)

    loader = SpecificationLoader()
    old_spec = loader.load_dict(old_document, "invoices-v1")
    new_spec = loader.load_dict(revised_document(), "invoices-v2")

    engine = DiffEngine()
    result = engine.compare(old_spec, "v1", new_spec, "v2")

    print(TextRenderer().render(result))

    summary = result.summary()
    print("Summary:")
    print(f"  Verdict: {result.verdict.label}")
    print(f"  Breaking: {summary.breaking_changes}")
    print(f"  Compatible: {summary.compatible_changes}")
    print(f"  Paths added/removed: {summary.paths_added}/{summary.paths_removed}")


def example_with_config():
    """Response enum removals tolerated, internal fields ignored."""
    print("\n" + "=" * 60)
    print("Example with Configuration")
    print("=" * 60)

    config = EngineConfig(
        enum_removal_breaks_output=False,
        ignore_paths=["$.components.schemas.Invoice.properties.'x-internal-notes'"],
    )
    loader = SpecificationLoader.from_config(config)
    engine = DiffEngine(config)

    result = engine.compare(
        loader.load_dict(old_document, "v1"), "v1",
        loader.load_dict(revised_document(), "v2"), "v2",
    )
    print(f"\nVerdict: {result.verdict.label}")
    for entry in result.entries():
        print(f"  - [{entry.verdict.name}] {entry.location}: {entry.message}")


def example_with_extension():
    """Custom comparator for a vendor extension."""
    print("\n" + "=" * 60)
    print("Example with Extension Comparator")
    print("=" * 60)

    registry = ExtensionRegistry.default()
    registry.register(OwnerComparator())
    engine = DiffEngine(extensions=registry)

    loader = SpecificationLoader()
    result = engine.compare(
        loader.load_dict(old_document, "v1"), "v1",
        loader.load_dict(revised_document(), "v2"), "v2",
    )

    print(f"\nVerdict: {result.verdict.label}")
    print("Full JSON Report:")
    print(json.dumps(result.to_dict(), indent=2, default=str))


if __name__ == "__main__":
    main()
    example_with_config()
    example_with_extension()
