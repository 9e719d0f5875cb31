"""Per-comparison state shared by the differs."""

from __future__ import annotations

from dataclasses import dataclass, field

from .differ import SchemaDiffer
from .document import Specification
from .extensions import ExtensionRegistry
from .models import EngineConfig


@dataclass
class ComparisonContext:
    """
    Everything one comparison call needs.

    A context is created per call and never shared, so the schema
    differ's visited-pair cache cannot leak between comparisons.
    """
    old: Specification
    new: Specification
    config: EngineConfig
    extensions: ExtensionRegistry
    schemas: SchemaDiffer = field(init=False, repr=False)

    def __post_init__(self):
        self.schemas = SchemaDiffer(self)
