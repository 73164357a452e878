"""Tests for JSON schema validation."""

from protogen.schemas.structure_definition import (
    SEARCH_PARAMETER_SCHEMA,
    STRUCTURE_DEFINITION_SCHEMA,
)
from protogen.services.validation import validate_against_schema


def _document(**overrides):
    document = {
        "resourceType": "StructureDefinition",
        "url": "http://hl7.org/fhir/StructureDefinition/Money",
        "id": "Money",
        "kind": "complex-type",
        "snapshot": {"element": [{"id": "Money", "path": "Money"}]},
    }
    document.update(overrides)
    return document


def test_valid_structure_definition():
    errors = validate_against_schema(_document(), STRUCTURE_DEFINITION_SCHEMA)
    assert errors == []


def test_missing_required_fields():
    errors = validate_against_schema(
        {"resourceType": "StructureDefinition"}, STRUCTURE_DEFINITION_SCHEMA
    )
    assert any("url" in e for e in errors)
    assert any("snapshot" in e for e in errors)


def test_invalid_kind():
    errors = validate_against_schema(_document(kind="datatype"), STRUCTURE_DEFINITION_SCHEMA)
    assert len(errors) == 1
    assert errors[0].startswith("kind: ")


def test_element_errors_carry_their_location():
    document = _document(
        snapshot={"element": [{"id": "Money", "max": "many"}, {"path": "Money.value"}]}
    )
    errors = validate_against_schema(document, STRUCTURE_DEFINITION_SCHEMA)

    assert len(errors) == 2
    assert errors[0].startswith("snapshot/element/0/max: ")
    assert errors[1].startswith("snapshot/element/1: ")


def test_empty_snapshot_is_rejected():
    errors = validate_against_schema(
        _document(snapshot={"element": []}), STRUCTURE_DEFINITION_SCHEMA
    )
    assert len(errors) > 0


def test_invalid_search_parameter_type():
    parameter = {"name": "active", "type": "boolean", "base": ["Patient"]}
    errors = validate_against_schema(parameter, SEARCH_PARAMETER_SCHEMA)
    assert len(errors) > 0
