"""Small builders for definitions and generators shared by the test modules."""

from __future__ import annotations

import re

from protogen.config import ProtogenConfig
from protogen.generator.codes import ValueSetCodeSynthesizer
from protogen.generator.compiler import ProtoGenerator
from protogen.generator.registry import DefinitionRegistry
from protogen.generator.search import SearchParameterTable
from protogen.models.definitions import (
    Binding,
    Element,
    ExtensionValue,
    SchemaDefinition,
    TypeReference,
)

SD = "http://hl7.org/fhir/StructureDefinition/"
PACKAGE = "google.fhir.r4.core"
CURRENCIES = "http://hl7.org/fhir/ValueSet/currencies"
FHIR_TYPE = "http://hl7.org/fhir/StructureDefinition/structuredefinition-fhir-type"


def element(element_id: str, *types, **fields) -> Element:
    """``element("Patient.name", "HumanName", max="*")``; the path drops slice names."""
    fields.setdefault("path", re.sub(r":[^.]*", "", element_id))
    return Element(
        id=element_id,
        types=tuple(TypeReference(code=t) if isinstance(t, str) else t for t in types),
        **fields,
    )


def required_code(element_id: str, value_set: str, **fields) -> Element:
    return element(
        element_id,
        "code",
        binding=Binding(strength="required", value_set=value_set),
        **fields,
    )


def system_type(code: str, fhir_type: str) -> TypeReference:
    return TypeReference(
        code=f"http://hl7.org/fhirpath/System.{code}",
        extensions=(ExtensionValue(url=FHIR_TYPE, value=fhir_type),),
    )


def definition(definition_id: str, *elements: Element, kind="complex-type", **fields):
    fields.setdefault("url", SD + definition_id)
    fields.setdefault("name", definition_id)
    return SchemaDefinition(id=definition_id, kind=kind, elements=elements, **fields)


def money() -> SchemaDefinition:
    return definition(
        "Money",
        element("Money", short="An amount of economic utility in some recognized currency"),
        element("Money.value", "decimal", short="Numerical value (with implicit precision)"),
        required_code("Money.currency", CURRENCIES + "|4.0.1", short="ISO 4217 Currency Code"),
    )


def generator_for(
    *definitions: SchemaDefinition,
    value_sets: dict | None = None,
    search_parameters: SearchParameterTable | None = None,
    **config,
) -> ProtoGenerator:
    config.setdefault("proto_package", PACKAGE)
    settings = ProtogenConfig(**config)
    return ProtoGenerator(
        settings,
        DefinitionRegistry(definitions),
        ValueSetCodeSynthesizer(settings.proto_package, value_sets or {}),
        search_parameters,
    )
