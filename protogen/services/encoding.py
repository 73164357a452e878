"""
Binary descriptor codec.

Converts the generator's ``FileDescriptor`` models into
``google.protobuf.descriptor_pb2.FileDescriptorProto`` messages. Annotations
become custom options declared by the annotations companion file; they are
set through a descriptor pool that knows those extensions and then carried
over to the standard option messages as extension bytes.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from protogen.models.definitions import DefinitionKind
from protogen.models.descriptors import (
    EnumDescriptor,
    FieldAnnotations,
    FieldDescriptor,
    FieldType,
    FileDescriptor,
    Label,
    MessageAnnotations,
    MessageDescriptor,
)
from protogen.schemas.annotations import (
    ANNOTATIONS_PACKAGE,
    FHIR_VERSION_VALUES,
    REPEATED_EXTENSIONS,
    SEARCH_PARAMETER_TYPE_VALUES,
    STRUCTURE_DEFINITION_KIND_VALUES,
    annotations_file,
)

logger = logging.getLogger(__name__)

FieldProto = descriptor_pb2.FieldDescriptorProto

_FIELD_TYPES = {
    FieldType.MESSAGE: FieldProto.TYPE_MESSAGE,
    FieldType.ENUM: FieldProto.TYPE_ENUM,
    FieldType.STRING: FieldProto.TYPE_STRING,
    FieldType.BOOL: FieldProto.TYPE_BOOL,
    FieldType.SINT32: FieldProto.TYPE_SINT32,
    FieldType.UINT32: FieldProto.TYPE_UINT32,
    FieldType.INT64: FieldProto.TYPE_INT64,
    FieldType.BYTES: FieldProto.TYPE_BYTES,
}

_LABELS = {
    Label.OPTIONAL: FieldProto.LABEL_OPTIONAL,
    Label.REPEATED: FieldProto.LABEL_REPEATED,
}


# ---------------------------------------------------------------------------
# Option handling
# ---------------------------------------------------------------------------


@lru_cache(maxsize=None)
def _annotation_pool() -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.DescriptorPool()
    descriptor_file = descriptor_pb2.FileDescriptorProto()
    descriptor_pb2.DESCRIPTOR.CopyToProto(descriptor_file)
    pool.AddSerializedFile(descriptor_file.SerializeToString())
    pool.AddSerializedFile(annotations_file().SerializeToString())
    return pool


def _options_class(full_name: str):
    pool = _annotation_pool()
    return message_factory.GetMessageClass(pool.FindMessageTypeByName(full_name))


def _extension(name: str):
    return _annotation_pool().FindExtensionByName(f"{ANNOTATIONS_PACKAGE}.{name}")


def _build_options(static_class, values: dict[str, Any]):
    """
    An instance of ``static_class`` (e.g. ``descriptor_pb2.FieldOptions``) with
    the given annotation extensions set. Empty values are left out.
    """
    options = _options_class(static_class.DESCRIPTOR.full_name)()
    for name, value in values.items():
        if value is None or value == () or value is False:
            continue
        extension = _extension(name)
        if name == "search_parameter":
            for parameter in value:
                options.Extensions[extension].add(**parameter)
        elif name in REPEATED_EXTENSIONS:
            options.Extensions[extension].extend(value)
        else:
            options.Extensions[extension] = value
    return static_class.FromString(options.SerializeToString())


def _decode_value(field, value):
    if field.type == field.TYPE_ENUM:
        return field.enum_type.values_by_number[value].name
    if field.type == field.TYPE_MESSAGE:
        return {inner.name: _decode_value(inner, item) for inner, item in value.ListFields()}
    return value


def decode_options(options) -> dict[str, Any]:
    """
    Reads the annotation extensions back out of a descriptor options message.

    Enum values come back as names and repeated values as lists, e.g.
    ``{"validation_requirement": "REQUIRED_BY_FHIR", "fhir_profile_base": [...]}``.
    """
    dynamic = _options_class(options.DESCRIPTOR.full_name)()
    dynamic.ParseFromString(options.SerializeToString())
    decoded: dict[str, Any] = {}
    for field, value in dynamic.ListFields():
        if not field.is_extension:
            continue
        if field.name in REPEATED_EXTENSIONS:
            decoded[field.name] = [_decode_value(field, item) for item in value]
        else:
            decoded[field.name] = _decode_value(field, value)
    return decoded


# ---------------------------------------------------------------------------
# Annotation mapping
# ---------------------------------------------------------------------------


def _kind_number(kind: DefinitionKind | None) -> int | None:
    if kind is None:
        return None
    return STRUCTURE_DEFINITION_KIND_VALUES["KIND_" + kind.value.upper().replace("-", "_")]


def _message_option_values(annotations: MessageAnnotations, reserved_reasons) -> dict[str, Any]:
    return {
        "structure_definition_kind": _kind_number(annotations.structure_definition_kind),
        "message_description": annotations.description,
        "fhir_structure_definition_url": annotations.structure_definition_url,
        "is_abstract_type": annotations.is_abstract_type,
        "is_choice_type": annotations.is_choice_type,
        "fhir_profile_base": annotations.profile_bases,
        "search_parameter": tuple(
            {
                "name": parameter.name,
                "type": SEARCH_PARAMETER_TYPE_VALUES[parameter.type.name],
                "expression": parameter.expression,
            }
            for parameter in annotations.search_parameters
        ),
        "fhir_path_message_constraint": annotations.fhirpath_constraints,
        "fhir_path_message_warning_constraint": annotations.fhirpath_warning_constraints,
        "value_regex": annotations.value_regex,
        "fhir_valueset_url": annotations.valueset_url,
        "reserved_reason": tuple(reserved_reasons),
    }


def _field_option_values(annotations: FieldAnnotations) -> dict[str, Any]:
    return {
        "field_description": annotations.description,
        "validation_requirement": 1 if annotations.required_by_fhir else None,
        "valid_reference_type": annotations.valid_reference_types,
        "fhir_path_constraint": annotations.fhirpath_constraints,
        "fhir_path_warning_constraint": annotations.fhirpath_warning_constraints,
        "fhir_inlined_extension_url": annotations.inlined_extension_url,
    }


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


def _field_proto(field: FieldDescriptor) -> descriptor_pb2.FieldDescriptorProto:
    proto = FieldProto(
        name=field.name,
        number=field.number,
        label=_LABELS[field.label],
        type=_FIELD_TYPES[field.type],
    )
    if field.type_name:
        proto.type_name = field.type_name
    if field.json_name:
        proto.json_name = field.json_name
    if field.oneof_index is not None:
        proto.oneof_index = field.oneof_index
    if field.annotations != FieldAnnotations():
        proto.options.CopyFrom(
            _build_options(descriptor_pb2.FieldOptions, _field_option_values(field.annotations))
        )
    return proto


def _enum_proto(enum: EnumDescriptor) -> descriptor_pb2.EnumDescriptorProto:
    proto = descriptor_pb2.EnumDescriptorProto(name=enum.name)
    for value in enum.values:
        proto.value.add(name=value.name, number=value.number)
    return proto


def _message_proto(message: MessageDescriptor) -> descriptor_pb2.DescriptorProto:
    proto = descriptor_pb2.DescriptorProto(name=message.name)
    proto.field.extend(_field_proto(field) for field in message.fields)
    proto.nested_type.extend(_message_proto(nested) for nested in message.nested_types)
    proto.enum_type.extend(_enum_proto(enum) for enum in message.enum_types)
    for oneof in message.oneofs:
        proto.oneof_decl.add(name=oneof)
    for tag in message.reserved:
        proto.reserved_range.add(start=tag.number, end=tag.number + 1)

    if message.annotations != MessageAnnotations() or message.reserved:
        values = _message_option_values(
            message.annotations, (tag.reason for tag in message.reserved)
        )
        proto.options.CopyFrom(_build_options(descriptor_pb2.MessageOptions, values))
    return proto


def to_file_descriptor_proto(file: FileDescriptor) -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name=file.name,
        package=file.package,
        syntax=file.syntax,
        dependency=list(file.dependencies),
    )
    proto.message_type.extend(_message_proto(message) for message in file.message_types)

    options = _build_options(
        descriptor_pb2.FileOptions,
        {"fhir_version": FHIR_VERSION_VALUES.get(file.fhir_version or "")},
    )
    if file.java_package:
        options.java_package = file.java_package
        options.java_multiple_files = file.java_multiple_files
    if file.go_package:
        options.go_package = file.go_package
    if options.ByteSize():
        proto.options.CopyFrom(options)
    return proto


def serialize_file(file: FileDescriptor) -> bytes:
    """Deterministic wire bytes for a file descriptor."""
    data = to_file_descriptor_proto(file).SerializeToString(deterministic=True)
    logger.debug("Serialized %s (%d bytes)", file.name, len(data))
    return data
