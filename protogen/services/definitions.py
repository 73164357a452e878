"""
Conversion of FHIR JSON documents into generator input models.

Documents are validated against the JSON schemas in
``protogen.schemas.structure_definition`` first; a document that fails
validation is rejected with every error message, not just the first.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from protogen.errors import MalformedInputError
from protogen.models.definitions import (
    Binding,
    Constraint,
    Element,
    ExtensionValue,
    SchemaDefinition,
    Slicing,
    TypeReference,
)
from protogen.models.descriptors import SearchParameter
from protogen.schemas.structure_definition import (
    SEARCH_PARAMETER_SCHEMA,
    STRUCTURE_DEFINITION_SCHEMA,
)
from protogen.services.validation import validate_against_schema

logger = logging.getLogger(__name__)

_EXTENSION_VALUE_KEYS = ("valueString", "valueUri", "valueUrl", "valueCode", "valueCanonical")


def parse_structure_definition(document: dict[str, Any]) -> SchemaDefinition:
    """Validate a StructureDefinition document and convert it to a SchemaDefinition."""
    errors = validate_against_schema(document, STRUCTURE_DEFINITION_SCHEMA)
    if errors:
        label = document.get("url") or document.get("id") or "<unnamed>"
        raise MalformedInputError(
            f"Invalid StructureDefinition {label}: " + "; ".join(errors)
        )

    return SchemaDefinition(
        url=document["url"],
        id=document["id"],
        name=document.get("name", ""),
        kind=document["kind"],
        abstract=document.get("abstract", False),
        derivation=document.get("derivation", "specialization"),
        base_definition=document.get("baseDefinition"),
        elements=tuple(_parse_element(raw) for raw in document["snapshot"]["element"]),
    )


def parse_structure_definitions(documents: Iterable[dict[str, Any]]) -> list[SchemaDefinition]:
    definitions = [parse_structure_definition(document) for document in documents]
    logger.info("Parsed %d structure definitions", len(definitions))
    return definitions


def parse_search_parameter(document: dict[str, Any]) -> tuple[tuple[str, ...], SearchParameter]:
    """
    Validate a SearchParameter document.
    Returns the resource types it applies to together with the annotation value.
    """
    errors = validate_against_schema(document, SEARCH_PARAMETER_SCHEMA)
    if errors:
        raise MalformedInputError(
            f"Invalid SearchParameter {document.get('name', '<unnamed>')}: " + "; ".join(errors)
        )
    parameter = SearchParameter(
        name=document["name"],
        type=document["type"],
        expression=document.get("expression", ""),
    )
    return tuple(document["base"]), parameter


# ---------------------------------------------------------------------------
# Element-level conversion
# ---------------------------------------------------------------------------


def _parse_extensions(raw: list[dict[str, Any]] | None) -> tuple[ExtensionValue, ...]:
    extensions = []
    for entry in raw or []:
        value = next((entry[key] for key in _EXTENSION_VALUE_KEYS if key in entry), "")
        extensions.append(ExtensionValue(url=entry["url"], value=value))
    return tuple(extensions)


def _parse_type(raw: dict[str, Any]) -> TypeReference:
    return TypeReference(
        code=raw.get("code", ""),
        profiles=tuple(raw.get("profile", [])),
        target_profiles=tuple(raw.get("targetProfile", [])),
        extensions=_parse_extensions(raw.get("extension")),
    )


def _parse_element(raw: dict[str, Any]) -> Element:
    binding = raw.get("binding")
    slicing = raw.get("slicing")
    return Element(
        id=raw["id"],
        path=raw.get("path", ""),
        base_path=raw.get("base", {}).get("path", ""),
        min=raw.get("min", 0),
        max=raw.get("max", "1"),
        types=tuple(_parse_type(entry) for entry in raw.get("type", [])),
        binding=(
            Binding(strength=binding["strength"], value_set=binding.get("valueSet", ""))
            if binding
            else None
        ),
        slicing=Slicing(rules=slicing.get("rules", "open")) if slicing else None,
        fixed_uri=raw.get("fixedUri"),
        content_reference=raw.get("contentReference"),
        short=raw.get("short"),
        constraints=tuple(
            Constraint(
                key=entry.get("key", ""),
                severity=entry.get("severity", "error"),
                expression=entry.get("expression", ""),
            )
            for entry in raw.get("constraint", [])
        ),
        extensions=_parse_extensions(raw.get("extension")),
    )
