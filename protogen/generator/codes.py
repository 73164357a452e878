"""
Bound-code synthesis: small enum-backed messages for ``code`` fields with a
required value-set binding.

The generator only depends on the ``BoundCodeSynthesizer`` protocol;
``ValueSetCodeSynthesizer`` is the default implementation, driven by a
plain mapping of value-set url -> codes.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Mapping, Protocol, Sequence

from protogen.errors import UnrecognizedIdentityError
from protogen.generator.naming import canonical_uri, name_from_qualified_name
from protogen.models.definitions import DefinitionKind
from protogen.models.descriptors import (
    EnumDescriptor,
    EnumValue,
    FieldAnnotations,
    FieldDescriptor,
    FieldType,
    Label,
    MessageAnnotations,
    MessageDescriptor,
)

logger = logging.getLogger(__name__)

CODE_PROFILE_URL = "http://hl7.org/fhir/StructureDefinition/code"

_SYMBOL_NAMES = {
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL_TO",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL_TO",
    "=": "EQUALS",
    "!=": "NOT_EQUAL_TO",
}


class BoundCodeSynthesizer(Protocol):
    def generate_code_bound_to_value_set(
        self, type_name: str, value_set_url: str
    ) -> MessageDescriptor:
        """
        ``type_name`` is the fully qualified message name to generate, e.g.
        ``.google.fhir.r4.core.Money.CurrencyCode``.
        """


def code_to_enum_value_name(code: str) -> str:
    """``entered-in-error`` -> ``ENTERED_IN_ERROR``, ``<=`` -> ``LESS_THAN_OR_EQUAL_TO``."""
    if code in _SYMBOL_NAMES:
        return _SYMBOL_NAMES[code]
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", code)
    name = re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").upper()
    if not name or name[0].isdigit():
        name = "V_" + name
    return name


class ValueSetCodeSynthesizer:
    """Generates a bound-code message from an in-memory table of value sets."""

    def __init__(self, package: str, value_sets: Mapping[str, Sequence[str]]):
        self.package = package
        self._value_sets = MappingProxyType(
            {canonical_uri(url): tuple(codes) for url, codes in value_sets.items()}
        )

    def generate_code_bound_to_value_set(
        self, type_name: str, value_set_url: str
    ) -> MessageDescriptor:
        url = canonical_uri(value_set_url)
        if url not in self._value_sets:
            raise UnrecognizedIdentityError(url, f"Unrecognized value set: {url}")

        values = [EnumValue(name="INVALID_UNINITIALIZED", number=0)]
        for code in self._value_sets[url]:
            values.append(EnumValue(name=code_to_enum_value_name(code), number=len(values)))

        logger.debug("Bound %s to %s (%d codes)", type_name, url, len(values) - 1)
        return MessageDescriptor(
            name=name_from_qualified_name(type_name),
            fields=(
                FieldDescriptor(
                    name="value",
                    number=1,
                    type=FieldType.ENUM,
                    type_name=f"{type_name}.Value",
                ),
                FieldDescriptor(
                    name="id",
                    number=2,
                    type_name=f".{self.package}.String",
                    annotations=FieldAnnotations(description="xml:id (or equivalent in JSON)"),
                ),
                FieldDescriptor(
                    name="extension",
                    number=3,
                    label=Label.REPEATED,
                    type_name=f".{self.package}.Extension",
                    annotations=FieldAnnotations(
                        description="Additional content defined by implementations"
                    ),
                ),
            ),
            enum_types=(EnumDescriptor(name="Value", values=tuple(values)),),
            annotations=MessageAnnotations(
                structure_definition_kind=DefinitionKind.PRIMITIVE_TYPE,
                valueset_url=url,
                profile_bases=(CODE_PROFILE_URL,),
            ),
        )
