"""Tests for choice types (``value[x]`` style fields)."""

import pytest

from builders import CURRENCIES, PACKAGE, SD, definition, element, generator_for, required_code
from protogen.errors import MalformedInputError
from protogen.models.definitions import Constraint, TypeReference


def _observation(*value_types, extra=()):
    return definition(
        "Observation",
        element("Observation"),
        element("Observation.status", "code"),
        element("Observation.value[x]", *value_types),
        *extra,
        kind="resource",
    )


def test_one_member_per_distinct_type_in_first_seen_order():
    observation = _observation("Quantity", "string", "boolean", "Quantity")
    message = generator_for(observation).generate_message(observation)

    value = message.field("value")
    assert value.number == 2
    assert value.type_name == f".{PACKAGE}.Observation.ValueX"

    choice = message.nested_type("ValueX")
    assert [(f.name, f.number) for f in choice.fields] == [
        ("quantity", 1),
        ("string_value", 2),
        ("boolean", 3),
    ]
    assert {f.oneof_index for f in choice.fields} == {0}
    assert choice.oneofs == ("choice",)
    assert choice.annotations.is_choice_type is True
    assert choice.field("string_value").json_name == "string"
    assert choice.field("quantity").type_name == f".{PACKAGE}.Quantity"


def test_reference_member_collects_every_target():
    patient = definition("Patient", element("Patient"), kind="resource")
    group = definition("Group", element("Group"), kind="resource")
    observation = _observation(
        TypeReference(code="Reference", target_profiles=(SD + "Patient",)),
        TypeReference(code="Reference", target_profiles=(SD + "Group",)),
        "string",
    )
    message = generator_for(patient, group, observation).generate_message(observation)

    choice = message.nested_type("ValueX")
    assert [f.name for f in choice.fields] == ["reference", "string_value"]
    assert choice.field("reference").annotations.valid_reference_types == ("Patient", "Group")


def test_bound_code_slice_becomes_nested_code_type():
    value_set = "http://example.org/ValueSet/answers"
    observation = _observation(
        "code",
        "string",
        extra=(required_code("Observation.value[x]:valueCode", value_set),),
    )
    generator = generator_for(observation, value_sets={value_set: ["yes", "no"]})
    message = generator.generate_message(observation)

    choice = message.nested_type("ValueX")
    assert choice.field("code").type_name == f".{PACKAGE}.Observation.ValueX.CodeType"
    code_type = choice.nested_type("CodeType")
    assert [v.name for v in code_type.enum_types[0].values] == [
        "INVALID_UNINITIALIZED",
        "YES",
        "NO",
    ]
    # The slice itself never becomes a field of the parent.
    assert [f.name for f in message.fields] == ["status", "value"]


def test_choice_bound_to_a_value_set_itself_nests_the_code_type():
    observation = definition(
        "Observation",
        element("Observation"),
        required_code("Observation.value[x]", CURRENCIES),
        kind="resource",
    )
    generator = generator_for(observation, value_sets={CURRENCIES: ["USD", "EUR"]})
    message = generator.generate_message(observation)

    value_type = message.field("value").type_name
    choice = message.nested_type(value_type.rsplit(".", 1)[-1])
    assert [n.name for n in choice.nested_types] == ["CodeType"]
    assert choice.field("code").type_name == f"{value_type}.CodeType"
    assert [v.name for v in choice.nested_type("CodeType").enum_types[0].values] == [
        "INVALID_UNINITIALIZED",
        "USD",
        "EUR",
    ]


def test_reference_targets_resolve_through_profiles():
    patient = definition("Patient", element("Patient"), kind="resource")
    us_core = definition(
        "us-core-patient",
        element("Patient"),
        kind="resource",
        derivation="constraint",
        base_definition=SD + "Patient",
    )
    observation = _observation(
        TypeReference(code="Reference", target_profiles=(SD + "us-core-patient",)),
        "string",
    )
    message = generator_for(patient, us_core, observation).generate_message(observation)

    reference = message.nested_type("ValueX").field("reference")
    assert reference.annotations.valid_reference_types == ("Patient",)


def test_choice_constraints_live_on_the_choice_message():
    observation = _observation("Quantity", "string")
    observation = observation.model_copy(
        update={
            "elements": observation.elements[:2]
            + (
                element(
                    "Observation.value[x]",
                    "Quantity",
                    "string",
                    constraints=(Constraint(key="obs-7", expression="value.exists()"),),
                ),
            )
        }
    )
    message = generator_for(observation).generate_message(observation)

    assert message.nested_type("ValueX").annotations.fhirpath_constraints == (
        "value.exists()",
    )
    assert message.field("value").annotations.fhirpath_constraints == ()


# ---------------------------------------------------------------------------
# Choices constrained by a profile
# ---------------------------------------------------------------------------


def _base_observation():
    return definition(
        "Observation",
        element("Observation", base_path="Observation"),
        element("Observation.status", "code", base_path="Observation.status"),
        element(
            "Observation.value[x]",
            "Quantity",
            "string",
            "boolean",
            base_path="Observation.value[x]",
        ),
        kind="resource",
    )


def _vital_signs(*value_types, constraints=()):
    return definition(
        "vitalsigns",
        element("Observation", base_path="Observation"),
        element("Observation.status", "code", base_path="Observation.status", min=1),
        element(
            "Observation.value[x]",
            *value_types,
            base_path="Observation.value[x]",
            constraints=constraints,
        ),
        kind="resource",
        derivation="constraint",
        base_definition=SD + "Observation",
    )


def test_profile_reuses_base_members_filtered_by_type_code():
    profile = _vital_signs("boolean", "Quantity")
    message = generator_for(_base_observation(), profile).generate_message(profile)

    assert message.name == "Vitalsigns"
    assert message.field("value").type_name == f".{PACKAGE}.Vitalsigns.ValueX"
    choice = message.nested_type("ValueX")
    # Tags come from the base choice, so profiled data stays wire compatible.
    assert [(f.name, f.number) for f in choice.fields] == [("boolean", 3), ("quantity", 1)]
    assert message.annotations.profile_bases == (SD + "Observation",)
    assert message.field("status").annotations.required_by_fhir is True


def test_profile_constraints_override_base_choice_constraints():
    profile = _vital_signs(
        "Quantity", constraints=(Constraint(key="vs-1", expression="value.exists()"),)
    )
    message = generator_for(_base_observation(), profile).generate_message(profile)
    assert message.nested_type("ValueX").annotations.fhirpath_constraints == (
        "value.exists()",
    )


def test_profile_cannot_add_types_missing_from_base():
    profile = _vital_signs("Quantity", "Period")
    with pytest.raises(MalformedInputError, match="Period"):
        generator_for(_base_observation(), profile).generate_message(profile)
