"""Building a single field descriptor from an element."""

from __future__ import annotations

import logging

from protogen.generator.context import GenerationContext
from protogen.generator.elements import (
    field_label,
    is_choice_type,
    is_extension_backbone_element,
    is_required_by_fhir,
)
from protogen.generator.naming import (
    RESERVED_FIELD_NAMES,
    snake_to_json_case,
    to_field_name_case,
)
from protogen.generator.resolver import (
    QualifiedType,
    choice_type_base,
    container_type_name,
    name_for_element,
    qualified_field_type,
)
from protogen.models.definitions import Element
from protogen.models.descriptors import FieldAnnotations, FieldDescriptor, FieldType, Label

logger = logging.getLogger(__name__)


def build_field_internal(
    fhir_name: str,
    type_name: str,
    number: int,
    label: Label,
    annotations: FieldAnnotations = FieldAnnotations(),
    *,
    field_type: FieldType = FieldType.MESSAGE,
    oneof_index: int | None = None,
) -> FieldDescriptor:
    field_name = to_field_name_case(fhir_name)
    if fhir_name in RESERVED_FIELD_NAMES:
        field_name += "_value"
    # Keep the original FHIR name when snake -> json can't recover it.
    json_name = fhir_name if fhir_name != snake_to_json_case(field_name) else None
    return FieldDescriptor(
        name=field_name,
        number=number,
        label=label,
        type=field_type,
        type_name=type_name,
        json_name=json_name,
        oneof_index=oneof_index,
        annotations=annotations,
    )


def reference_target_types(ctx: GenerationContext, element: Element) -> tuple[str, ...]:
    """Base type names of every target profile across the element's Reference types."""
    return tuple(
        ctx.registry.base_type_name(url)
        for type_ref in element.types
        if type_ref.code == "Reference"
        for url in type_ref.target_profiles
        if url
    )


def build_field(ctx: GenerationContext, element: Element, number: int) -> FieldDescriptor | None:
    """
    Build one field for an element. Returns None when the element has a max
    cardinality of zero, i.e. the field does not exist on this profile.
    """
    label = field_label(element)
    if label is None:
        return None

    required = is_required_by_fhir(element)
    if not required and element.min != 0:
        logger.warning("Unexpected minimum field count %d on %s", element.min, element.id)
    annotations = FieldAnnotations(description=element.short, required_by_fhir=required)

    base = choice_type_base(ctx, element)
    if base is not None:
        # Reuse the base field's name and type so profiles stay wire compatible.
        base_container = container_type_name(ctx, base)
        container = container_type_name(ctx, element)
        container = container[: container.rfind(".") + 1] + base_container.rsplit(".", 1)[-1]
        return build_field_internal(
            name_for_element(ctx, base),
            QualifiedType(container, ctx.config.proto_package).qualified,
            number,
            label,
            annotations,
        )

    if not is_choice_type(element) and element.types and element.types[0].code == "Reference":
        annotations = annotations.model_copy(
            update={"valid_reference_types": reference_target_types(ctx, element)}
        )

    field = build_field_internal(
        name_for_element(ctx, element),
        qualified_field_type(ctx, element).qualified,
        number,
        label,
        annotations,
    )

    if is_extension_backbone_element(element):
        # Internal extensions default to a url equal to the field's json name.
        url_element = ctx.find_element(f"{element.id}.url")
        url = url_element.fixed_uri if url_element is not None else None
        if url and (field.json_name or snake_to_json_case(field.name)) != url:
            field = field.model_copy(
                update={
                    "annotations": field.annotations.model_copy(
                        update={"inlined_extension_url": url}
                    )
                }
            )
    return field
