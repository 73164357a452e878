"""
The element-tree walker: turns one definition's flattened element list into a
nested message descriptor tree.

Demonstrates:
  - Recursive descent over element ids (children are built before parents)
  - Sequential tag allocation in declaration order, with reserved tags for
    anything that cannot be a field, so tags are never reused
  - Append-only construction: each message is created once from complete lists
"""

from __future__ import annotations

import logging
import re

from protogen.errors import MalformedInputError
from protogen.generator.choice import build_choice_type_if_required
from protogen.generator.context import GenerationContext
from protogen.generator.elements import (
    binding_value_set_url,
    constraint_expressions,
    direct_children,
    has_closed_extension_slicing,
    is_choice_type,
    is_choice_type_slice,
    is_container,
    is_contained_resource_field,
    is_primitive_value_element,
    is_single_type,
    is_slice,
    is_supported_for_slicing,
)
from protogen.generator.fields import build_field
from protogen.generator.naming import name_from_qualified_name
from protogen.generator.primitives import materialize_primitive_value
from protogen.generator.resolver import bound_code_type, container_type_name
from protogen.models.definitions import ConstraintSeverity, DefinitionKind, Element
from protogen.models.descriptors import (
    EnumDescriptor,
    FieldDescriptor,
    MessageAnnotations,
    MessageDescriptor,
    ReservedKind,
    ReservedTag,
)

logger = logging.getLogger(__name__)

# Suppressing these is part of every extension definition; reserving a tag for
# them would only add noise.
_SILENTLY_SUPPRESSED_PATHS = frozenset({"Extension.extension", "Extension.value[x]"})

_RESERVED_TAG_PREFIX = re.compile(r"^([Ff]ield )(\d+)\b")


# ---------------------------------------------------------------------------
# Nested types
# ---------------------------------------------------------------------------


def build_nested_type_if_needed(
    ctx: GenerationContext, element: Element
) -> MessageDescriptor | None:
    """The message a field's type refers to, when it is defined inside the parent."""
    choice = build_choice_type_if_required(ctx, element)
    if choice is not None:
        return choice
    if len(element.types) != 1:
        return None

    code_type = bound_code_type(ctx, element)
    if code_type is not None:
        return ctx.bound_codes.generate_code_bound_to_value_set(
            code_type.qualified, binding_value_set_url(element)
        )
    if is_container(element):
        return generate_message(ctx, element)
    return None


def _build_member(
    ctx: GenerationContext, element: Element, number: int
) -> tuple[FieldDescriptor | None, MessageDescriptor | None]:
    field = build_field(ctx, element, number)
    if field is None:
        return None, None

    nested = build_nested_type_if_needed(ctx, element)
    if nested is None:
        # Without a message of its own, constraints live on the field.
        field = field.model_copy(
            update={
                "annotations": field.annotations.model_copy(
                    update={
                        "fhirpath_constraints": constraint_expressions(
                            element, ConstraintSeverity.ERROR
                        ),
                        "fhirpath_warning_constraints": constraint_expressions(
                            element, ConstraintSeverity.WARNING
                        ),
                    }
                )
            }
        )
    return field, nested


def _shift_reserved(tag: ReservedTag, shift: int) -> ReservedTag:
    number = tag.number + shift
    reason = _RESERVED_TAG_PREFIX.sub(lambda m: f"{m.group(1)}{number}", tag.reason, count=1)
    return tag.model_copy(update={"number": number, "reason": reason})


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def generate_message(ctx: GenerationContext, element: Element) -> MessageDescriptor:
    """Build the message for ``element`` and, recursively, everything below it."""
    fields: list[FieldDescriptor] = []
    nested_types: list[MessageDescriptor] = []
    enum_types: list[EnumDescriptor] = []
    reserved: list[ReservedTag] = []
    value_regex: str | None = None
    next_tag = 1

    def reserve(kind: ReservedKind, reason: str):
        nonlocal next_tag
        reserved.append(ReservedTag(number=next_tag, kind=kind, reason=reason))
        next_tag += 1

    def add_member(child: Element):
        nonlocal next_tag
        field, nested = _build_member(ctx, child, next_tag)
        if field is not None:
            fields.append(field)
            if nested is not None:
                nested_types.append(nested)
        elif child.path not in _SILENTLY_SUPPRESSED_PATHS:
            reserved.append(
                ReservedTag(
                    number=next_tag,
                    kind=ReservedKind.NOT_PRESENT_ON_PROFILE,
                    reason=f"{child.path} not present on profile.",
                )
            )
        next_tag += 1

    for child in direct_children(element, ctx.elements):
        if is_primitive_value_element(child):
            primitive = materialize_primitive_value(ctx, child)
            # Value fields own the lowest tags; everything already added moves up.
            shift = len(primitive.fields)
            fields = list(primitive.fields) + [
                field.model_copy(update={"number": field.number + shift}) for field in fields
            ]
            reserved = [_shift_reserved(tag, shift) for tag in reserved]
            enum_types.extend(primitive.enum_types)
            value_regex = primitive.regex
            next_tag = max([f.number for f in fields] + [r.number for r in reserved]) + 1
            continue

        # A fixed url on an extension is the definition url, already recorded
        # as message metadata.
        if child.base_path == "Extension.url" and child.fixed_uri:
            continue

        # Typed slices of a choice are handled by the choice type itself.
        if is_choice_type_slice(child):
            continue

        if not is_choice_type(child) and not is_single_type(child):
            raise MalformedInputError(
                f"Illegal field has multiple types but is not a choice type: {child.id}"
            )

        if is_contained_resource_field(child):
            add_member(child)
            reserve(
                ReservedKind.CONTAINED_RESOURCE_PLACEHOLDER,
                f"Field {next_tag} reserved for strongly-typed ContainedResource "
                f"for id: {child.id}",
            )
        elif is_slice(child) and not is_choice_type(child) and not is_supported_for_slicing(child):
            code = child.types[0].code if child.types else ""
            logger.warning(
                "Unsupported slicing on %s (%s); reserving tag %d", child.id, code, next_tag
            )
            reserve(
                ReservedKind.UNSUPPORTED_SLICING,
                f"field {next_tag} reserved for {child.id} which uses an unsupported "
                f"slicing on {code}",
            )
        elif has_closed_extension_slicing(child):
            reserve(
                ReservedKind.CLOSED_EXTENSION_SLICING,
                f"Field {next_tag} reserved for unsliced field for element with closed "
                f"slicing: {child.id}",
            )
        else:
            add_member(child)

    return MessageDescriptor(
        name=name_from_qualified_name(container_type_name(ctx, element)),
        fields=tuple(fields),
        nested_types=tuple(nested_types),
        enum_types=tuple(enum_types),
        reserved=tuple(reserved),
        annotations=MessageAnnotations(
            fhirpath_constraints=constraint_expressions(element, ConstraintSeverity.ERROR),
            fhirpath_warning_constraints=constraint_expressions(
                element, ConstraintSeverity.WARNING
            ),
            value_regex=value_regex,
        ),
    )


def message_description(ctx: GenerationContext) -> str:
    definition = ctx.definition
    description = f"Auto-generated from StructureDefinition for {definition.name or definition.id}."
    short = ctx.root.short
    if short:
        if not short.endswith("."):
            short += "."
        description += "\n" + short.replace("\r\n", "\n").replace("\r", "\n")
    return description + f"\nSee {definition.url}"


def generate_definition(ctx: GenerationContext) -> MessageDescriptor:
    """The top-level message for a whole definition, with its identifying metadata."""
    definition = ctx.definition
    message = generate_message(ctx, ctx.root)

    search_parameters = ()
    if definition.kind == DefinitionKind.RESOURCE:
        search_parameters = ctx.search_parameters.for_resource(ctx.root.id)

    profile_bases = ()
    if definition.is_profile:
        profile_bases = tuple(
            base.url for base in ctx.registry.resolve_base_chain(definition.url)[1:]
        )

    annotations = message.annotations.model_copy(
        update={
            "structure_definition_kind": definition.kind,
            "description": message_description(ctx),
            "structure_definition_url": definition.url,
            "is_abstract_type": definition.abstract,
            "search_parameters": search_parameters,
            "profile_bases": profile_bases,
        }
    )
    logger.debug(
        "Generated %s: %d fields, %d reserved",
        message.name,
        len(message.fields),
        len(message.reserved),
    )
    return message.model_copy(update={"annotations": annotations})
