"""
The ``value`` element of primitive types.

For historical reasons the value field(s) take the lowest tag numbers of a
primitive message; the walker shifts any fields added before them.
"""

from __future__ import annotations

from dataclasses import dataclass

from protogen.errors import MalformedInputError
from protogen.generator.context import GenerationContext
from protogen.generator.elements import is_required_by_fhir
from protogen.generator.naming import to_field_type_case
from protogen.models.definitions import Element
from protogen.models.descriptors import (
    EnumDescriptor,
    EnumValue,
    FieldAnnotations,
    FieldDescriptor,
    FieldType,
)

REGEX_EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/regex"

# Supported granularity of each time-like primitive.
TIME_LIKE_PRECISION = {
    "date": ("YEAR", "MONTH", "DAY"),
    "dateTime": ("YEAR", "MONTH", "DAY", "SECOND", "MILLISECOND", "MICROSECOND"),
    "instant": ("SECOND", "MILLISECOND", "MICROSECOND"),
    "time": ("SECOND", "MILLISECOND", "MICROSECOND"),
}
TYPES_WITH_TIMEZONE = frozenset({"date", "dateTime", "instant"})

PRIMITIVE_TYPE_OVERRIDES = {
    "base64Binary": FieldType.BYTES,
    "boolean": FieldType.BOOL,
    "integer": FieldType.SINT32,
    "positiveInt": FieldType.UINT32,
    "unsignedInt": FieldType.UINT32,
}


@dataclass(frozen=True)
class PrimitiveValue:
    fields: tuple[FieldDescriptor, ...]
    enum_types: tuple[EnumDescriptor, ...] = ()
    regex: str | None = None


def primitive_regex(element: Element) -> str | None:
    """The regex annotation on the element's sole type, if any."""
    matches = [ext for ext in element.types[0].extensions if ext.url == REGEX_EXTENSION_URL]
    if len(matches) > 1:
        raise MalformedInputError(f"Multiple regex extensions found on {element.id}")
    return matches[0].value if matches else None


def materialize_primitive_value(ctx: GenerationContext, value_element: Element) -> PrimitiveValue:
    type_id = ctx.definition.id
    regex = primitive_regex(value_element) if len(value_element.types) == 1 else None

    if type_id not in TIME_LIKE_PRECISION:
        description = value_element.short or f"Primitive value for {type_id}"
        value = FieldDescriptor(
            name="value",
            number=1,
            type=PRIMITIVE_TYPE_OVERRIDES.get(type_id, FieldType.STRING),
            annotations=FieldAnnotations(
                description=description,
                required_by_fhir=is_required_by_fhir(value_element),
            ),
        )
        return PrimitiveValue(fields=(value,), regex=regex)

    precision = EnumDescriptor(
        name="Precision",
        values=(EnumValue(name="PRECISION_UNSPECIFIED", number=0),)
        + tuple(
            EnumValue(name=name, number=number)
            for number, name in enumerate(TIME_LIKE_PRECISION[type_id], start=1)
        ),
    )
    fields = [
        FieldDescriptor(
            name="value_us",
            number=1,
            type=FieldType.INT64,
            annotations=FieldAnnotations(description=f"Primitive value for {type_id}"),
        )
    ]
    if type_id in TYPES_WITH_TIMEZONE:
        fields.append(FieldDescriptor(name="timezone", number=2, type=FieldType.STRING))
    fields.append(
        FieldDescriptor(
            name="precision",
            number=len(fields) + 1,
            type=FieldType.ENUM,
            type_name=f".{ctx.config.proto_package}.{to_field_type_case(type_id)}.Precision",
        )
    )
    return PrimitiveValue(fields=tuple(fields), enum_types=(precision,), regex=regex)
