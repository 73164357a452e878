"""Tests for the definition registry."""

import pytest

from builders import SD, definition, element
from protogen.errors import MalformedInputError, UnrecognizedIdentityError, UnresolvedUrlError
from protogen.generator.registry import DefinitionRegistry
from protogen.models.definitions import ExtensionValue
from protogen.generator.naming import EXPLICIT_TYPE_NAME_EXTENSION_URL


def _patient():
    return definition("Patient", element("Patient"), kind="resource")


def _profile(definition_id, base_id):
    return definition(
        definition_id,
        element("Patient"),
        kind="resource",
        derivation="constraint",
        base_definition=SD + base_id,
    )


def test_lookup_by_url_and_id():
    registry = DefinitionRegistry([_patient(), _profile("us-core-patient", "Patient")])

    assert len(registry) == 2
    assert SD + "Patient" in registry
    assert registry.type_name(SD + "us-core-patient") == "UsCorePatient"
    assert registry.base_definition_by_id("Patient").url == SD + "Patient"
    assert registry.resource_type_ids() == frozenset({"Patient"})


def test_profiles_are_not_indexed_by_id():
    registry = DefinitionRegistry([_patient(), _profile("Patient-profile", "Patient")])
    assert registry.base_definition_by_id("Patient").url == SD + "Patient"
    with pytest.raises(MalformedInputError, match="Unknown StructureDefinition id"):
        registry.base_definition_by_id("Patient-profile")


def test_base_chain_walks_to_first_non_profile():
    registry = DefinitionRegistry(
        [
            _patient(),
            _profile("us-core-patient", "Patient"),
            _profile("my-patient", "us-core-patient"),
        ]
    )
    chain = registry.resolve_base_chain(SD + "my-patient")

    assert [d.id for d in chain] == ["my-patient", "us-core-patient", "Patient"]
    assert registry.base_type_name(SD + "my-patient") == "Patient"
    assert [d.id for d in registry.resolve_base_chain(SD + "Patient")] == ["Patient"]


def test_empty_url_is_rejected():
    with pytest.raises(UnresolvedUrlError, match="has no url"):
        DefinitionRegistry([definition("Patient", element("Patient"), url="")])


def test_duplicate_url_is_rejected():
    with pytest.raises(UnresolvedUrlError, match="Duplicate"):
        DefinitionRegistry([_patient(), _patient()])


def test_missing_profile_base_is_rejected():
    with pytest.raises(UnresolvedUrlError, match="unknown base definition"):
        DefinitionRegistry([_profile("us-core-patient", "Patient")])


def test_profile_cycle_is_rejected():
    registry = DefinitionRegistry([_profile("a", "b"), _profile("b", "a")])
    with pytest.raises(UnresolvedUrlError, match="cycle"):
        registry.resolve_base_chain(SD + "a")


def test_unknown_url_reports_identity():
    registry = DefinitionRegistry([_patient()])
    with pytest.raises(UnrecognizedIdentityError) as excinfo:
        registry.type_name(SD + "Unknown")
    assert excinfo.value.identity == SD + "Unknown"


def test_explicit_type_name_on_root_wins():
    renamed = definition(
        "elementdefinition-de",
        element(
            "Extension",
            extensions=(
                ExtensionValue(url=EXPLICIT_TYPE_NAME_EXTENSION_URL, value="DataElement"),
            ),
        ),
    )
    assert DefinitionRegistry([renamed]).type_name(renamed.url) == "DataElement"
