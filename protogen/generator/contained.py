"""The ContainedResource union over every concrete resource message."""

from __future__ import annotations

from typing import Iterable

from protogen.generator.naming import to_field_name_case
from protogen.models.definitions import DefinitionKind
from protogen.models.descriptors import (
    FieldDescriptor,
    FileDescriptor,
    Label,
    MessageDescriptor,
)

CONTAINED_RESOURCE = "ContainedResource"
CONTAINED_RESOURCE_ONEOF = "oneof_resource"


def assemble_contained_resource(
    package: str, resources: Iterable[MessageDescriptor]
) -> MessageDescriptor:
    """
    One oneof member per non-abstract resource, numbered 1..N alphabetically
    by message name so regenerating from the same inputs is byte identical.
    Later messages with an already-seen name are ignored.
    """
    by_name: dict[str, MessageDescriptor] = {}
    for resource in resources:
        by_name.setdefault(resource.name, resource)

    members = [
        resource
        for name, resource in sorted(by_name.items())
        if resource.annotations.structure_definition_kind == DefinitionKind.RESOURCE
        and not resource.annotations.is_abstract_type
    ]
    fields = tuple(
        FieldDescriptor(
            name=to_field_name_case(resource.name),
            number=number,
            label=Label.OPTIONAL,
            type_name=f".{package}.{resource.name}",
            oneof_index=0,
        )
        for number, resource in enumerate(members, start=1)
    )
    return MessageDescriptor(
        name=CONTAINED_RESOURCE, fields=fields, oneofs=(CONTAINED_RESOURCE_ONEOF,)
    )


def add_contained_resource(
    file: FileDescriptor, resources: Iterable[MessageDescriptor]
) -> FileDescriptor:
    """A copy of ``file`` with the ContainedResource union appended."""
    contained = assemble_contained_resource(file.package, resources)
    return file.model_copy(update={"message_types": file.message_types + (contained,)})
