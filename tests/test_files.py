"""Tests for file-level descriptor assembly."""

from builders import CURRENCIES, PACKAGE, SD, definition, element, generator_for, money
from protogen.generator.compiler import ANY_PROTO, EXTENSION_URL


def _definitions():
    return [
        money(),
        definition("Element", element("Element")),
        definition("Extension", element("Extension")),
        definition(
            "patient-birthPlace",
            element("Extension", base_path="Extension"),
            derivation="constraint",
            base_definition=EXTENSION_URL,
        ),
        definition("Patient", element("Patient"), kind="resource"),
        definition("Bundle", element("Bundle"), kind="resource"),
    ]


def _generator(**config):
    return generator_for(*_definitions(), value_sets={CURRENCIES: ["USD"]}, **config)


def test_datatypes_file_skips_infrastructure_types_and_extensions():
    generator = _generator()
    file = generator.generate_datatypes_file()

    assert file.name == "proto/google/fhir/proto/r4/core/datatypes.proto"
    assert file.package == PACKAGE
    assert [m.name for m in file.message_types] == ["Money"]
    assert file.dependencies == (
        "proto/google/fhir/proto/annotations.proto",
        "proto/google/fhir/proto/r4/core/codes.proto",
        "proto/google/fhir/proto/r4/core/valuesets.proto",
    )


def test_resource_file_depends_on_datatypes_and_any():
    generator = _generator(source_directory="out/r4")
    patient = generator.registry.definition(SD + "Patient")
    file = generator.generate_resource_file(patient)

    assert file.name == "out/r4/resources/patient.proto"
    assert [m.name for m in file.message_types] == ["Patient"]
    assert file.dependencies[-2:] == ("out/r4/datatypes.proto", ANY_PROTO)


def test_resource_file_name_is_snake_case_of_message_name():
    generator = generator_for(
        definition("MedicationRequest", element("MedicationRequest"), kind="resource")
    )
    medication_request = generator.registry.definition(SD + "MedicationRequest")
    assert generator.resource_file_name(medication_request).endswith(
        "/resources/medication_request.proto"
    )


def test_language_options_follow_config():
    plain = _generator().generate_datatypes_file()
    assert plain.java_package == ""
    assert plain.java_multiple_files is False
    assert plain.fhir_version == "R4"

    configured = _generator(
        java_proto_package="com.google.fhir.r4.core",
        go_proto_package="github.com/google/fhir/go/proto/r4/core",
    ).generate_datatypes_file()
    assert configured.java_package == "com.google.fhir.r4.core"
    assert configured.java_multiple_files is True
    assert configured.go_package == "github.com/google/fhir/go/proto/r4/core"
