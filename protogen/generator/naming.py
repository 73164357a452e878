"""Casing rules and element-id parsing shared by the generator."""

from __future__ import annotations

import re
from dataclasses import dataclass

from protogen.errors import MalformedInputError
from protogen.models.definitions import SchemaDefinition

EXPLICIT_TYPE_NAME_EXTENSION_URL = (
    "http://hl7.org/fhir/StructureDefinition/structuredefinition-explicit-type-name"
)

# Certain field names are reserved symbols in various languages.
RESERVED_FIELD_NAMES = frozenset({"assert", "for", "hasAnswer", "package", "string", "class"})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(frozen=True)
class IdToken:
    """The last dot-separated token of an element id, e.g. ``value[x]:valueCode``."""

    pathpart: str
    is_choice_type: bool
    slicename: str | None

    @classmethod
    def parse(cls, token: str) -> IdToken:
        parts = token.split(":")
        if len(parts) > 2:
            raise MalformedInputError(f"Bad id token: {token}")
        pathpart = parts[0]
        is_choice_type = pathpart.endswith("[x]")
        if is_choice_type:
            pathpart = pathpart[: -len("[x]")]
        return cls(pathpart, is_choice_type, parts[1] if len(parts) == 2 else None)


def last_id_token(element_id: str) -> IdToken:
    return IdToken.parse(element_id.rsplit(".", 1)[-1])


def parent_id(element_id: str) -> str | None:
    if "." not in element_id:
        return None
    return element_id.rsplit(".", 1)[0]


def hyphen_to_camel(name: str) -> str:
    head, *rest = name.split("-")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_field_type_case(name: str) -> str:
    """``dateTime`` -> ``DateTime``, ``value[x]`` -> ``Value``, ``us-core`` -> ``UsCore``."""
    normalized = hyphen_to_camel(name.removesuffix("[x]"))
    return normalized[:1].upper() + normalized[1:]


def to_field_name_case(name: str) -> str:
    """lowerCamel or UpperCamel -> lower_snake, as required by the proto style guide."""
    return _CAMEL_BOUNDARY.sub("_", hyphen_to_camel(name.removesuffix("[x]"))).lower()


def snake_to_json_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def name_from_qualified_name(qualified_name: str) -> str:
    return qualified_name.rsplit(".", 1)[-1]


def canonical_uri(url: str) -> str:
    """Strips a ``|version`` suffix from a canonical reference."""
    return url.split("|", 1)[0]


def definition_type_name(definition: SchemaDefinition) -> str:
    """Name of the top-level message generated for a definition."""
    renames = definition.root.extensions_with_url(EXPLICIT_TYPE_NAME_EXTENSION_URL)
    if renames:
        return to_field_type_case(renames[0].value)
    return to_field_type_case(re.sub(r"[^A-Za-z0-9-]", "", definition.id))
