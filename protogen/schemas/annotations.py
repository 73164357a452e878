"""
The structural annotations companion file (``annotations.proto``).

Every piece of metadata the generator attaches to a message, field or file
is written as a custom option declared here, so any protobuf tooling that
loads this file can read the annotations back out of a compiled descriptor.
"""

from __future__ import annotations

from typing import NamedTuple

from google.protobuf import descriptor_pb2

ANNOTATIONS_PACKAGE = "google.fhir.proto"
DESCRIPTOR_PROTO = "google/protobuf/descriptor.proto"

FieldProto = descriptor_pb2.FieldDescriptorProto


class OptionExtension(NamedTuple):
    name: str
    number: int
    type: int
    type_name: str | None = None
    repeated: bool = False


def _local(name: str) -> str:
    return f".{ANNOTATIONS_PACKAGE}.{name}"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

STRUCTURE_DEFINITION_KIND_VALUES = {
    "KIND_UNKNOWN": 0,
    "KIND_PRIMITIVE_TYPE": 1,
    "KIND_COMPLEX_TYPE": 2,
    "KIND_RESOURCE": 3,
    "KIND_LOGICAL": 4,
}

REQUIREMENT_VALUES = {"NOT_REQUIRED": 0, "REQUIRED_BY_FHIR": 1}

FHIR_VERSION_VALUES = {"FHIR_VERSION_UNKNOWN": 0, "DSTU2": 1, "STU3": 2, "R4": 3, "R5": 4}

SEARCH_PARAMETER_TYPE_VALUES = {
    "SEARCH_PARAMETER_TYPE_UNKNOWN": 0,
    "NUMBER": 1,
    "DATE": 2,
    "STRING": 3,
    "TOKEN": 4,
    "REFERENCE": 5,
    "COMPOSITE": 6,
    "QUANTITY": 7,
    "URI": 8,
    "SPECIAL": 9,
}

_ENUMS = {
    "StructureDefinitionKindValue": STRUCTURE_DEFINITION_KIND_VALUES,
    "Requirement": REQUIREMENT_VALUES,
    "FhirVersion": FHIR_VERSION_VALUES,
    "SearchParameterType": SEARCH_PARAMETER_TYPE_VALUES,
}

# ---------------------------------------------------------------------------
# Option extensions
# ---------------------------------------------------------------------------

MESSAGE_EXTENSIONS = (
    OptionExtension(
        "structure_definition_kind",
        50001,
        FieldProto.TYPE_ENUM,
        _local("StructureDefinitionKindValue"),
    ),
    OptionExtension("message_description", 50002, FieldProto.TYPE_STRING),
    OptionExtension("fhir_structure_definition_url", 50003, FieldProto.TYPE_STRING),
    OptionExtension("is_abstract_type", 50004, FieldProto.TYPE_BOOL),
    OptionExtension("is_choice_type", 50005, FieldProto.TYPE_BOOL),
    OptionExtension("fhir_profile_base", 50006, FieldProto.TYPE_STRING, repeated=True),
    OptionExtension(
        "search_parameter",
        50007,
        FieldProto.TYPE_MESSAGE,
        _local("SearchParameter"),
        repeated=True,
    ),
    OptionExtension("fhir_path_message_constraint", 50008, FieldProto.TYPE_STRING, repeated=True),
    OptionExtension(
        "fhir_path_message_warning_constraint", 50009, FieldProto.TYPE_STRING, repeated=True
    ),
    OptionExtension("value_regex", 50010, FieldProto.TYPE_STRING),
    OptionExtension("fhir_valueset_url", 50011, FieldProto.TYPE_STRING),
    OptionExtension("reserved_reason", 50012, FieldProto.TYPE_STRING, repeated=True),
)

FIELD_EXTENSIONS = (
    OptionExtension("field_description", 50101, FieldProto.TYPE_STRING),
    OptionExtension(
        "validation_requirement", 50102, FieldProto.TYPE_ENUM, _local("Requirement")
    ),
    OptionExtension("valid_reference_type", 50103, FieldProto.TYPE_STRING, repeated=True),
    OptionExtension("fhir_path_constraint", 50104, FieldProto.TYPE_STRING, repeated=True),
    OptionExtension("fhir_path_warning_constraint", 50105, FieldProto.TYPE_STRING, repeated=True),
    OptionExtension("fhir_inlined_extension_url", 50106, FieldProto.TYPE_STRING),
)

FILE_EXTENSIONS = (
    OptionExtension("fhir_version", 50201, FieldProto.TYPE_ENUM, _local("FhirVersion")),
)

_EXTENDEES = (
    (".google.protobuf.MessageOptions", MESSAGE_EXTENSIONS),
    (".google.protobuf.FieldOptions", FIELD_EXTENSIONS),
    (".google.protobuf.FileOptions", FILE_EXTENSIONS),
)

REPEATED_EXTENSIONS = frozenset(
    extension.name
    for _, extensions in _EXTENDEES
    for extension in extensions
    if extension.repeated
)


def annotations_file(path: str = "proto/google/fhir/proto") -> descriptor_pb2.FileDescriptorProto:
    """The descriptor for ``{path}/annotations.proto``."""
    file = descriptor_pb2.FileDescriptorProto(
        name=f"{path}/annotations.proto",
        package=ANNOTATIONS_PACKAGE,
        syntax="proto2",
        dependency=[DESCRIPTOR_PROTO],
    )
    for enum_name, values in _ENUMS.items():
        enum = file.enum_type.add(name=enum_name)
        for value_name, number in values.items():
            enum.value.add(name=value_name, number=number)

    search_parameter = file.message_type.add(name="SearchParameter")
    search_parameter.field.add(
        name="name", number=1, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING
    )
    search_parameter.field.add(
        name="type",
        number=2,
        label=FieldProto.LABEL_OPTIONAL,
        type=FieldProto.TYPE_ENUM,
        type_name=_local("SearchParameterType"),
    )
    search_parameter.field.add(
        name="expression", number=3, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING
    )

    for extendee, extensions in _EXTENDEES:
        for extension in extensions:
            field = file.extension.add(
                name=extension.name,
                number=extension.number,
                label=(
                    FieldProto.LABEL_REPEATED if extension.repeated else FieldProto.LABEL_OPTIONAL
                ),
                type=extension.type,
                extendee=extendee,
            )
            if extension.type_name:
                field.type_name = extension.type_name
    return file
