"""Main comparison engine for apidiff."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from .context import ComparisonContext
from .document import SecurityScheme, Specification
from .exceptions import ValidationError
from .extensions import ExtensionContext, ExtensionRegistry
from .loader import SpecificationLoader
from .models import (
    ChangeKind,
    ChangeSet,
    EngineConfig,
    NodeKind,
    SpecificationChangeSet,
    Verdict,
)
from .paths import PathMatcher
from .utils import build_path

logger = logging.getLogger(__name__)


class DiffEngine:
    """
    Main comparison engine:

    1. Path matching: align path templates, report added/removed paths
    2. Operation diffing: parameters, bodies, responses, security
    3. Schema diffing: recursive, direction-aware, cycle-safe
    4. Aggregation: every node's verdict is its most severe finding

    The engine keeps no state between calls; each comparison gets its own
    context and schema cache.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        extensions: Optional[ExtensionRegistry] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if not provided)
            extensions: Extension comparators (uses the built-ins if not provided)
        """
        self.config = config or EngineConfig()
        self.extensions = extensions if extensions is not None else ExtensionRegistry.default()

    def compare(
        self,
        old_spec: Specification,
        old_id: str,
        new_spec: Specification,
        new_id: str
    ) -> SpecificationChangeSet:
        """
        Compare two loaded documents.

        Args:
            old_spec: The baseline document
            old_id: Human-readable name of the baseline
            new_spec: The revised document
            new_id: Human-readable name of the revision

        Returns:
            Root ChangeSet of the comparison

        Raises:
            ValidationError: if a document is missing or an identifier is not a string
        """
        self._validate_inputs(old_spec, old_id, new_spec, new_id)
        start_time = time.time()

        context = ComparisonContext(
            old=old_spec,
            new=new_spec,
            config=self.config,
            extensions=self.extensions,
        )

        root = SpecificationChangeSet(
            element=f"{old_id} -> {new_id}",
            kind=NodeKind.SPECIFICATION,
            location="$",
            old_id=old_id,
            new_id=new_id,
        )
        root.add_child(PathMatcher(context).diff(old_spec.paths, new_spec.paths))
        root.add_child(self._diff_security_schemes(
            old_spec.security_schemes, new_spec.security_schemes
        ))
        root.changes.extend(self.extensions.compare(
            old_spec.extensions,
            new_spec.extensions,
            ExtensionContext("$", NodeKind.SPECIFICATION),
        ))

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Compared %s with %s in %dms: %s",
            old_id, new_id, duration_ms, root.verdict.label
        )
        return root

    def from_locations(
        self,
        old_location: str,
        new_location: str,
        old_id: Optional[str] = None,
        new_id: Optional[str] = None,
        loader: Optional[SpecificationLoader] = None
    ) -> SpecificationChangeSet:
        """
        Load two documents from disk and compare them.

        Identifiers default to the file names without extension.
        """
        loader = loader or SpecificationLoader.from_config(self.config)
        old_id = old_id or Path(old_location).stem
        new_id = new_id or Path(new_location).stem

        old_spec = loader.load(old_location, name=old_id)
        new_spec = loader.load(new_location, name=new_id)
        return self.compare(old_spec, old_id, new_spec, new_id)

    def _validate_inputs(self, old_spec, old_id, new_spec, new_id):
        """Validate input parameters."""
        if old_spec is None:
            raise ValidationError("old_spec is required")
        if new_spec is None:
            raise ValidationError("new_spec is required")

        for name, spec in (("old_spec", old_spec), ("new_spec", new_spec)):
            if not isinstance(spec, Specification):
                raise ValidationError(
                    f"{name} must be a Specification",
                    {"type": type(spec).__name__}
                )

        for name, identifier in (("old_id", old_id), ("new_id", new_id)):
            if not isinstance(identifier, str):
                raise ValidationError(
                    f"{name} must be a string",
                    {"type": type(identifier).__name__}
                )

    def _diff_security_schemes(
        self,
        old: dict[str, SecurityScheme],
        new: dict[str, SecurityScheme],
        location: str = "$.components.securitySchemes"
    ) -> ChangeSet:
        """Compare the documents' security scheme definitions."""
        node = ChangeSet(element="securitySchemes", kind=NodeKind.SECURITY_SCHEMES, location=location)

        for name, old_scheme in old.items():
            scheme_location = build_path(location, name)
            new_scheme = new.get(name)
            if new_scheme is None:
                node.add_change(
                    ChangeKind.SECURITY_SCHEME_REMOVED,
                    Verdict.BREAKING,
                    f"Security scheme {name} removed",
                    old_value=old_scheme.type,
                    location=scheme_location,
                )
                continue

            for attr in ("type", "location", "parameter_name", "scheme"):
                old_value = getattr(old_scheme, attr)
                new_value = getattr(new_scheme, attr)
                if old_value != new_value:
                    node.add_change(
                        ChangeKind.SECURITY_SCHEME_CHANGED,
                        Verdict.BREAKING,
                        f"Security scheme {name} {attr.replace('_', ' ')} changed",
                        old_value=old_value,
                        new_value=new_value,
                        location=scheme_location,
                    )

        for name, new_scheme in new.items():
            if name not in old:
                node.add_change(
                    ChangeKind.SECURITY_SCHEME_ADDED,
                    Verdict.COMPATIBLE,
                    f"Security scheme {name} added",
                    new_value=new_scheme.type,
                    location=build_path(location, name),
                )

        return node


def compare(
    old_spec: Specification,
    old_id: str,
    new_spec: Specification,
    new_id: str,
    config: Optional[EngineConfig] = None,
    extensions: Optional[ExtensionRegistry] = None
) -> SpecificationChangeSet:
    """
    Convenience function to compare two loaded documents.

    Args:
        old_spec: The baseline document
        old_id: Name of the baseline
        new_spec: The revised document
        new_id: Name of the revision
        config: Optional engine configuration
        extensions: Optional extension comparators

    Returns:
        Root ChangeSet of the comparison
    """
    engine = DiffEngine(config, extensions)
    return engine.compare(old_spec, old_id, new_spec, new_id)
