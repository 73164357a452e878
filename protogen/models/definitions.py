"""
Input models: schema definitions and their snapshot elements.

These mirror the parts of a FHIR StructureDefinition that the generator
reads. Every model is frozen; a definition is never changed after it has
been parsed, so one registry can be shared by many generation calls.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DefinitionKind(str, Enum):
    PRIMITIVE_TYPE = "primitive-type"
    COMPLEX_TYPE = "complex-type"
    RESOURCE = "resource"
    LOGICAL = "logical"


class Derivation(str, Enum):
    SPECIALIZATION = "specialization"
    CONSTRAINT = "constraint"


class BindingStrength(str, Enum):
    REQUIRED = "required"
    EXTENSIBLE = "extensible"
    PREFERRED = "preferred"
    EXAMPLE = "example"


class SlicingRules(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    OPEN_AT_END = "openAtEnd"


class ConstraintSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExtensionValue(_Frozen):
    """A url-tagged extension carrying a single string-like value."""

    url: str
    value: str = ""


class TypeReference(_Frozen):
    code: str = ""
    profiles: tuple[str, ...] = ()
    target_profiles: tuple[str, ...] = ()
    extensions: tuple[ExtensionValue, ...] = ()


class Binding(_Frozen):
    strength: BindingStrength
    value_set: str = ""


class Slicing(_Frozen):
    rules: SlicingRules = SlicingRules.OPEN


class Constraint(_Frozen):
    key: str = ""
    severity: ConstraintSeverity = ConstraintSeverity.ERROR
    expression: str = ""


class Element(_Frozen):
    """One node of a snapshot, e.g. ``Patient.name`` or ``Patient.extension:race``."""

    id: str
    path: str = ""
    base_path: str = ""
    min: int = 0
    max: str = "1"
    types: tuple[TypeReference, ...] = ()
    binding: Binding | None = None
    slicing: Slicing | None = None
    fixed_uri: str | None = None
    content_reference: str | None = None
    short: str | None = None
    constraints: tuple[Constraint, ...] = ()
    extensions: tuple[ExtensionValue, ...] = ()

    def extensions_with_url(self, url: str) -> list[ExtensionValue]:
        return [ext for ext in self.extensions if ext.url == url]


class SchemaDefinition(_Frozen):
    """A snapshot-form definition of a primitive, complex type or resource."""

    url: str
    id: str
    name: str = ""
    kind: DefinitionKind
    abstract: bool = False
    derivation: Derivation = Derivation.SPECIALIZATION
    base_definition: str | None = None
    elements: tuple[Element, ...] = Field(..., min_length=1)

    @property
    def is_profile(self) -> bool:
        return self.derivation == Derivation.CONSTRAINT

    @property
    def root(self) -> Element:
        return self.elements[0]
