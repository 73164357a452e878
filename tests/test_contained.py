"""Tests for the ContainedResource union."""

from builders import PACKAGE, definition, element, generator_for
from protogen.generator.contained import (
    CONTAINED_RESOURCE,
    CONTAINED_RESOURCE_ONEOF,
    assemble_contained_resource,
)
from protogen.models.definitions import DefinitionKind
from protogen.models.descriptors import FileDescriptor, MessageAnnotations, MessageDescriptor


def _message(name, kind=DefinitionKind.RESOURCE, abstract=False):
    return MessageDescriptor(
        name=name,
        annotations=MessageAnnotations(
            structure_definition_kind=kind, is_abstract_type=abstract
        ),
    )


def test_members_sorted_by_name_and_numbered_from_one():
    contained = assemble_contained_resource(
        PACKAGE, [_message("Patient"), _message("Observation"), _message("Bundle")]
    )

    assert contained.name == CONTAINED_RESOURCE
    assert contained.oneofs == (CONTAINED_RESOURCE_ONEOF,)
    assert [(f.name, f.number) for f in contained.fields] == [
        ("bundle", 1),
        ("observation", 2),
        ("patient", 3),
    ]
    assert contained.field("observation").type_name == f".{PACKAGE}.Observation"
    assert {f.oneof_index for f in contained.fields} == {0}


def test_abstract_and_non_resource_messages_are_left_out():
    contained = assemble_contained_resource(
        PACKAGE,
        [
            _message("DomainResource", abstract=True),
            _message("Money", kind=DefinitionKind.COMPLEX_TYPE),
            _message("Patient"),
        ],
    )
    assert [f.name for f in contained.fields] == ["patient"]


def test_repeated_names_keep_the_first_message():
    contained = assemble_contained_resource(
        PACKAGE, [_message("Patient"), _message("Patient", abstract=True)]
    )
    assert [f.name for f in contained.fields] == ["patient"]


def test_multi_word_names_become_snake_case_fields():
    contained = assemble_contained_resource(PACKAGE, [_message("MedicationRequest")])
    assert contained.fields[0].name == "medication_request"


def test_union_is_appended_to_the_host_file():
    bundle = definition("Bundle", element("Bundle"), kind="resource")
    patient = definition("Patient", element("Patient"), kind="resource")
    generator = generator_for(bundle, patient)

    file = generator.generate_resource_file(bundle)
    resources = [generator.generate_message(bundle), generator.generate_message(patient)]
    updated = generator.add_contained_resource(file, resources)

    assert isinstance(updated, FileDescriptor)
    assert [m.name for m in updated.message_types] == ["Bundle", CONTAINED_RESOURCE]
    assert [f.name for f in updated.message_type(CONTAINED_RESOURCE).fields] == [
        "bundle",
        "patient",
    ]
    # The original file is left untouched.
    assert [m.name for m in file.message_types] == ["Bundle"]
