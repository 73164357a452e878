"""
Choice types: fields such as ``value[x]`` become a nested message holding a
single ``oneof choice`` with one member per distinct declared type.
"""

from __future__ import annotations

from protogen.errors import MalformedInputError
from protogen.generator.context import GenerationContext
from protogen.generator.elements import (
    binding_value_set_url,
    constraint_expressions,
    distinct_type_codes,
    has_bound_code,
    is_choice_type,
)
from protogen.generator.fields import build_field_internal, reference_target_types
from protogen.generator.naming import to_field_type_case
from protogen.generator.resolver import (
    QualifiedType,
    choice_type_base,
    name_for_element,
    normalize_type,
    qualified_field_type,
)
from protogen.models.definitions import ConstraintSeverity, Element
from protogen.models.descriptors import (
    FieldAnnotations,
    FieldDescriptor,
    Label,
    MessageAnnotations,
    MessageDescriptor,
)

CHOICE_ONEOF = "choice"


def _constraint_annotations(element: Element) -> dict:
    return {
        "fhirpath_constraints": constraint_expressions(element, ConstraintSeverity.ERROR),
        "fhirpath_warning_constraints": constraint_expressions(
            element, ConstraintSeverity.WARNING
        ),
    }


def _bound_code_sub_type(
    ctx: GenerationContext, element: Element, code: str, choice_type: QualifiedType
) -> MessageDescriptor | None:
    """
    A bound-code type for one member of the choice. It is declared either on
    a typed slice of the choice, e.g. ``value[x]:valueCode``, or on the choice
    element itself.
    """
    if code != "code":
        return None
    slice_id = f"{element.id}:{name_for_element(ctx, element)}{to_field_type_case(code)}"
    slice_element = ctx.find_element(slice_id)
    if slice_element is not None and has_bound_code(slice_element):
        bound = slice_element
    elif has_bound_code(element):
        bound = element
    else:
        return None
    # "Code" nested in the choice becomes "CodeType".
    return ctx.bound_codes.generate_code_bound_to_value_set(
        choice_type.child("CodeType").qualified, binding_value_set_url(bound)
    )


def _make_choice_type(
    ctx: GenerationContext, element: Element
) -> tuple[MessageDescriptor, dict[str, FieldDescriptor]]:
    """The choice message for ``element`` plus its members keyed by type code."""
    choice_type = qualified_field_type(ctx, element)
    reference_types = reference_target_types(ctx, element)

    nested: list[MessageDescriptor] = []
    members: dict[str, FieldDescriptor] = {}
    first_of_code = {}
    for type_ref in element.types:
        first_of_code.setdefault(type_ref.code, type_ref)

    for number, (code, type_ref) in enumerate(first_of_code.items(), start=1):
        field_name = code[:1].lower() + code[1:]
        sub_type = _bound_code_sub_type(ctx, element, code, choice_type)
        if sub_type is not None:
            nested.append(sub_type)
            members[code] = build_field_internal(
                field_name,
                choice_type.child(sub_type.name).qualified,
                number,
                Label.OPTIONAL,
                oneof_index=0,
            )
            continue
        annotations = FieldAnnotations()
        if field_name == "reference":
            annotations = FieldAnnotations(valid_reference_types=reference_types)
        members[code] = build_field_internal(
            field_name,
            QualifiedType(normalize_type(ctx, type_ref), ctx.config.proto_package).qualified,
            number,
            Label.OPTIONAL,
            annotations,
            oneof_index=0,
        )

    message = MessageDescriptor(
        name=choice_type.name.rsplit(".", 1)[-1],
        fields=tuple(members.values()),
        nested_types=tuple(nested),
        oneofs=(CHOICE_ONEOF,),
        annotations=MessageAnnotations(is_choice_type=True, **_constraint_annotations(element)),
    )
    return message, members


def build_choice_type(ctx: GenerationContext, element: Element) -> MessageDescriptor:
    """
    Build the oneof message for a choice element.

    When the element specializes a choice declared on a base type, the base's
    members are reused, restricted to the type codes the element still allows,
    so base and derived messages stay structurally compatible.
    """
    base = choice_type_base(ctx, element)
    if base is None:
        return _make_choice_type(ctx, element)[0]

    base_message, base_members = _make_choice_type(ctx, base)
    fields = []
    for code in distinct_type_codes(element):
        if code not in base_members:
            raise MalformedInputError(
                f"Choice element {element.id} allows {code}, which its base {base.id} does not"
            )
        fields.append(base_members[code])

    annotations = base_message.annotations
    constraints = _constraint_annotations(element)
    if any(constraints.values()):
        # Constraints may sit on the profiled element rather than the base.
        annotations = annotations.model_copy(update=constraints)
    return base_message.model_copy(update={"fields": tuple(fields), "annotations": annotations})


def build_choice_type_if_required(
    ctx: GenerationContext, element: Element
) -> MessageDescriptor | None:
    if choice_type_base(ctx, element) is None and not is_choice_type(element):
        return None
    return build_choice_type(ctx, element)
