"""Tests for the batch compile pipeline – plain JSON documents in, descriptors out."""

from protogen.config import ProtogenConfig
from protogen.etl.pipeline import build_compile_pipeline

SD = "http://hl7.org/fhir/StructureDefinition/"
PACKAGE = "google.fhir.r4.core"


def _structure_definition(definition_id, *elements, kind="resource", **fields):
    document = {
        "resourceType": "StructureDefinition",
        "url": SD + definition_id,
        "id": definition_id,
        "name": definition_id,
        "kind": kind,
        "snapshot": {"element": [{"id": definition_id, "path": definition_id}, *elements]},
    }
    document.update(fields)
    return document


def _element(element_id, *codes, **fields):
    return {
        "id": element_id,
        "path": element_id.split(":")[0],
        "type": [{"code": code} for code in codes],
        **fields,
    }


def _bundle():
    return _structure_definition(
        "Bundle",
        _element("Bundle.entry", "BackboneElement", max="*"),
        _element("Bundle.entry.resource", "Resource"),
    )


def _patient():
    return _structure_definition(
        "Patient",
        _element("Patient.active", "boolean"),
        _element("Patient.name", "HumanName", max="*"),
        _element("Patient.name:official", "HumanName"),
    )


def _period():
    return _structure_definition(
        "Period",
        _element("Period.start", "dateTime"),
        _element("Period.end", "dateTime"),
        kind="complex-type",
    )


def _run(*documents, **config):
    pipeline = build_compile_pipeline()
    result = pipeline.run(
        {
            "config": ProtogenConfig(**config),
            "structure_definitions": list(documents),
            "value_sets": {},
        }
    )
    return pipeline, result


def test_full_pipeline_happy_path():
    """Data types and resources each land in their own file."""
    pipeline, result = _run(_period(), _bundle(), _patient())

    assert result["status"] == "completed"
    summary = pipeline.output_of("summarize")
    assert summary["file_names"] == [
        "proto/google/fhir/proto/r4/core/datatypes.proto",
        "proto/google/fhir/proto/r4/core/resources/bundle.proto",
        "proto/google/fhir/proto/r4/core/resources/patient.proto",
    ]
    assert summary["failure_count"] == 0
    assert summary["rejected_count"] == 0


def test_contained_resource_lands_in_the_host_file():
    pipeline, _ = _run(_bundle(), _patient())

    files = {
        file.name.rsplit("/", 1)[-1]: file for file in pipeline.output_of("summarize")["files"]
    }
    bundle = files["bundle.proto"]
    assert [m.name for m in bundle.message_types] == ["Bundle", "ContainedResource"]
    assert [f.name for f in bundle.message_type("ContainedResource").fields] == [
        "bundle",
        "patient",
    ]
    assert bundle.dependencies[-1] == "proto/google/fhir/proto/r4/core/resources/patient.proto"
    entry = bundle.message_type("Bundle").nested_type("Entry")
    assert entry.field("resource").type_name == f".{PACKAGE}.ContainedResource"
    assert pipeline.output_of("assemble_contained")["contained_resource_count"] == 2

    # Outside the host, resource-typed fields stay untyped.
    assert [m.name for m in files["patient.proto"].message_types] == ["Patient"]


def test_missing_host_skips_the_union():
    pipeline, result = _run(_patient())

    assert result["status"] == "completed"
    assert pipeline.output_of("assemble_contained")["contained_resource_count"] == 0
    # No data types in the batch, so no datatypes file either.
    assert pipeline.output_of("summarize")["file_count"] == 1


def test_invalid_document_rejected():
    """A document without a snapshot is set aside; the rest still compiles."""
    broken = _structure_definition("Broken")
    del broken["snapshot"]
    pipeline, result = _run(_patient(), broken)

    assert result["status"] == "completed"
    rejected = pipeline.output_of("build_registry")["rejected"]
    assert len(rejected) == 1
    assert rejected[0]["url"] == SD + "Broken"
    assert pipeline.output_of("summarize")["rejected_count"] == 1


def test_failing_definition_does_not_stop_the_batch():
    bad = _structure_definition("Observation", _element("Observation.code", "string", "boolean"))
    pipeline, result = _run(bad, _patient())

    assert result["status"] == "completed"
    failures = pipeline.output_of("generate_resources")["failures"]
    assert failures == [
        {
            "url": SD + "Observation",
            "error": "MalformedInputError: Illegal field has multiple types but is not a "
            "choice type: Observation.code",
        }
    ]
    assert pipeline.output_of("summarize")["file_count"] == 1


def test_failing_data_type_is_left_out_of_the_datatypes_file():
    bad = _structure_definition(
        "Range", _element("Range.low", "string", "boolean"), kind="complex-type"
    )
    pipeline, result = _run(bad, _period(), _patient())

    assert result["status"] == "completed"
    assert pipeline.output_of("generate_datatypes")["datatype_failures"] == [
        {
            "url": SD + "Range",
            "error": "MalformedInputError: Illegal field has multiple types but is not a "
            "choice type: Range.low",
        }
    ]
    datatypes = pipeline.output_of("generate_datatypes")["datatypes_file"]
    assert [m.name for m in datatypes.message_types] == ["Period"]

    summary = pipeline.output_of("summarize")
    assert summary["failure_count"] == 1
    assert summary["file_names"][-1].endswith("resources/patient.proto")


def test_unsupported_slicing_is_reported():
    pipeline, _ = _run(_patient())

    diagnostics = pipeline.output_of("summarize")["diagnostics"]
    assert len(diagnostics) == 1
    assert diagnostics[0]["file"].endswith("resources/patient.proto")
    assert diagnostics[0]["kind"] == "unsupported_slicing"
    assert diagnostics[0]["number"] == 3


def test_missing_profile_base_fails_the_run():
    profile = _structure_definition(
        "us-core-patient",
        derivation="constraint",
        baseDefinition=SD + "Patient",
    )
    pipeline, result = _run(profile)

    assert result["status"] == "failed"
    assert pipeline.stages["build_registry"].error.startswith("UnresolvedUrlError: ")
    assert result["stages"]["summarize"] == {"status": "skipped"}
