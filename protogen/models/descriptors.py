"""
Output models: the message/field descriptor graph.

The generator builds these bottom-up and never mutates one after it is
returned; adjustments always go through ``model_copy``. The binary encoder
in ``protogen.services.encoding`` turns a ``FileDescriptor`` into a
``google.protobuf.descriptor_pb2.FileDescriptorProto``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from protogen.models.definitions import DefinitionKind


class FieldType(str, Enum):
    MESSAGE = "message"
    ENUM = "enum"
    STRING = "string"
    BOOL = "bool"
    SINT32 = "sint32"
    UINT32 = "uint32"
    INT64 = "int64"
    BYTES = "bytes"


class Label(str, Enum):
    OPTIONAL = "optional"
    REPEATED = "repeated"


class SearchParameterType(str, Enum):
    NUMBER = "number"
    DATE = "date"
    STRING = "string"
    TOKEN = "token"
    REFERENCE = "reference"
    COMPOSITE = "composite"
    QUANTITY = "quantity"
    URI = "uri"
    SPECIAL = "special"


class ReservedKind(str, Enum):
    NOT_PRESENT_ON_PROFILE = "not_present_on_profile"
    CLOSED_EXTENSION_SLICING = "closed_extension_slicing"
    CONTAINED_RESOURCE_PLACEHOLDER = "contained_resource_placeholder"
    UNSUPPORTED_SLICING = "unsupported_slicing"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------


class SearchParameter(_Frozen):
    name: str
    type: SearchParameterType
    expression: str = ""


class FieldAnnotations(_Frozen):
    description: str | None = None
    required_by_fhir: bool = False
    valid_reference_types: tuple[str, ...] = ()
    fhirpath_constraints: tuple[str, ...] = ()
    fhirpath_warning_constraints: tuple[str, ...] = ()
    inlined_extension_url: str | None = None


class MessageAnnotations(_Frozen):
    structure_definition_kind: DefinitionKind | None = None
    description: str | None = None
    structure_definition_url: str | None = None
    is_abstract_type: bool = False
    is_choice_type: bool = False
    profile_bases: tuple[str, ...] = ()
    search_parameters: tuple[SearchParameter, ...] = ()
    fhirpath_constraints: tuple[str, ...] = ()
    fhirpath_warning_constraints: tuple[str, ...] = ()
    value_regex: str | None = None
    valueset_url: str | None = None


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


class FieldDescriptor(_Frozen):
    name: str
    number: int
    label: Label = Label.OPTIONAL
    type: FieldType = FieldType.MESSAGE
    # Fully qualified with a leading dot, e.g. ".google.fhir.r4.core.String".
    type_name: str | None = None
    json_name: str | None = None
    oneof_index: int | None = None
    annotations: FieldAnnotations = FieldAnnotations()


class ReservedTag(_Frozen):
    """A tag number kept out of use so it is never handed to another field."""

    number: int
    kind: ReservedKind
    reason: str


class EnumValue(_Frozen):
    name: str
    number: int


class EnumDescriptor(_Frozen):
    name: str
    values: tuple[EnumValue, ...] = ()


class MessageDescriptor(_Frozen):
    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    nested_types: tuple[MessageDescriptor, ...] = ()
    enum_types: tuple[EnumDescriptor, ...] = ()
    oneofs: tuple[str, ...] = ()
    reserved: tuple[ReservedTag, ...] = ()
    annotations: MessageAnnotations = MessageAnnotations()

    def field(self, name: str) -> FieldDescriptor:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        raise KeyError(name)

    def nested_type(self, name: str) -> MessageDescriptor:
        for candidate in self.nested_types:
            if candidate.name == name:
                return candidate
        raise KeyError(name)

    @property
    def tag_numbers(self) -> list[int]:
        """Every tag used by this message, real or reserved, in ascending order."""
        return sorted([f.number for f in self.fields] + [r.number for r in self.reserved])


class FileDescriptor(_Frozen):
    name: str
    package: str
    syntax: str = "proto3"
    dependencies: tuple[str, ...] = ()
    java_package: str = ""
    java_multiple_files: bool = False
    go_package: str = ""
    fhir_version: str | None = None
    message_types: tuple[MessageDescriptor, ...] = ()

    def message_type(self, name: str) -> MessageDescriptor:
        for candidate in self.message_types:
            if candidate.name == name:
                return candidate
        raise KeyError(name)


class Diagnostic(_Frozen):
    """A non-fatal condition found while generating, e.g. unsupported slicing."""

    kind: ReservedKind
    message: str
    number: int
    reason: str


MessageDescriptor.model_rebuild()


def collect_diagnostics(message: MessageDescriptor, prefix: str = "") -> list[Diagnostic]:
    """Walk a message tree and report every unsupported-slicing placeholder."""
    qualified = f"{prefix}{message.name}"
    found = [
        Diagnostic(kind=tag.kind, message=qualified, number=tag.number, reason=tag.reason)
        for tag in message.reserved
        if tag.kind == ReservedKind.UNSUPPORTED_SLICING
    ]
    for nested in message.nested_types:
        found.extend(collect_diagnostics(nested, prefix=f"{qualified}."))
    return found
