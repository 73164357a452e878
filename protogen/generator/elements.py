"""
Predicates over snapshot elements and navigation of the element tree.

Tree position is encoded entirely in element ids: a direct child has the
parent's id plus exactly one more dot-separated token.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from protogen.errors import MalformedInputError
from protogen.generator.naming import last_id_token
from protogen.models.definitions import (
    BindingStrength,
    ConstraintSeverity,
    Element,
    SlicingRules,
)
from protogen.models.descriptors import Label

FHIRPATH_TYPE_PREFIX = "http://hl7.org/fhirpath/"

_PRIMITIVE_VALUE_ID = re.compile(r"[^.]*\.value")

# Exclude constraints from the DomainResource until they are moved to a
# common place rather than repeated on every resource.
DOMAIN_RESOURCE_CONSTRAINTS = frozenset(
    {
        "contained.contained.empty()",
        "contained.meta.versionId.empty() and contained.meta.lastUpdated.empty()",
        "contained.where((('#'+id in (%resource.descendants().reference"
        " | %resource.descendants().as(canonical) | %resource.descendants().as(uri)"
        " | %resource.descendants().as(url))) or descendants().where(reference = '#')"
        ".exists() or descendants().where(as(canonical) = '#').exists() or"
        " descendants().where(as(canonical) = '#').exists()).not())"
        ".trace('unmatched', id).empty()",
        "text.div.exists()",
        "text.`div`.exists()",
        "contained.meta.security.empty()",
    }
)

# Core constraint definitions that add nothing once compiled to descriptors.
EXCLUDED_FHIR_CONSTRAINTS = DOMAIN_RESOURCE_CONSTRAINTS | {
    "extension.exists() != value.exists()",
    "hasValue() | (children().count() > id.count())",
    "hasValue() or (children().count() > id.count())",
    "hasValue() or (children().count() > id.count()) or $this is Parameters",
    # Element names are known when the descriptors are compiled.
    "path.matches('[^\\\\s\\\\.,:;\\\\\\'\"\\\\/|?!@#$%&*()\\\\[\\\\]{}]{1,64}"
    "(\\\\.[^\\\\s\\\\.,:;\\\\\\'\"\\\\/|?!@#$%&*()\\\\[\\\\]{}]{1,64}"
    "(\\\\[x\\\\])?(\\\\:[^\\\\s\\\\.]+)?)*')",
    "path.matches('^[^\\\\s\\\\.,:;\\\\\\'\"\\\\/|?!@#$%&*()\\\\[\\\\]{}]{1,64}"
    "(\\\\.[^\\\\s\\\\.,:;\\\\\\'\"\\\\/|?!@#$%&*()\\\\[\\\\]{}]{1,64}"
    "(\\\\[x\\\\])?(\\\\:[^\\\\s\\\\.]+)?)*$')",
    # Invalid expression that shows up in US Core.
    "telecom or endpoint",
    "fullUrl.contains('/_history/').not()",
    "element.all(definition and min and max)",
    "probability is decimal implies (probability as decimal) <= 100",
}


# ---------------------------------------------------------------------------
# Tree navigation
# ---------------------------------------------------------------------------


def element_by_id(element_id: str, elements: Iterable[Element]) -> Element:
    """Returns the only element with the given id."""
    matches = [element for element in elements if element.id == element_id]
    if len(matches) != 1:
        raise MalformedInputError(
            f"Expected exactly one element with id {element_id}, found {len(matches)}"
        )
    return matches[0]


def direct_children(element: Element, elements: Sequence[Element]) -> list[Element]:
    prefix = element.id + "."
    depth = element.id.count(".") + 1
    return [
        candidate
        for candidate in elements
        if candidate.id.startswith(prefix) and candidate.id.count(".") == depth
    ]


# ---------------------------------------------------------------------------
# Shape predicates
# ---------------------------------------------------------------------------


def distinct_type_codes(element: Element) -> list[str]:
    """Declared type codes with duplicates removed, first-seen order kept."""
    return list(dict.fromkeys(type_ref.code for type_ref in element.types))


def is_choice_type(element: Element) -> bool:
    return last_id_token(element.id).is_choice_type


def is_choice_type_slice(element: Element) -> bool:
    token = last_id_token(element.id)
    return token.is_choice_type and token.slicename is not None


def is_slice(element: Element) -> bool:
    return last_id_token(element.id).slicename is not None


def is_container(element: Element) -> bool:
    """
    Fields of the abstract types Element or BackboneElement contain internal
    fields of their own, as does the top-level element.
    """
    if len(element.types) != 1:
        return False
    if "." not in element.id:
        return True
    return element.types[0].code in ("BackboneElement", "Element")


def is_single_type(element: Element) -> bool:
    if not element.types and element.content_reference is not None:
        return True
    return len({type_ref.code for type_ref in element.types if type_ref.code}) == 1


def is_primitive_value_element(element: Element) -> bool:
    if not _PRIMITIVE_VALUE_ID.fullmatch(element.id) or not element.types:
        return False
    code = element.types[0].code
    return not code or code.startswith(FHIRPATH_TYPE_PREFIX)


def is_contained_resource_field(element: Element) -> bool:
    return element.base_path == "DomainResource.contained"


def is_supported_for_slicing(element: Element) -> bool:
    return len(element.types) == 1 and element.types[0].code in ("Extension", "Coding")


def has_closed_extension_slicing(element: Element) -> bool:
    return (
        not is_choice_type(element)
        and element.slicing is not None
        and element.slicing.rules == SlicingRules.CLOSED
        and bool(element.types)
        and element.types[0].code == "Extension"
    )


def is_extension_backbone_element(element: Element) -> bool:
    """
    True for a root Extension element derived from a base, or for a slice on
    an extension that is not defined by an external profile.
    """
    if not element.base_path:
        return False
    is_root_extension = element.id == "Extension" or (
        "." not in element.id and element.id.startswith("Extension:")
    )
    is_internally_defined = (
        element.base_path.endswith(".extension")
        and is_slice(element)
        and bool(element.types)
        and not element.types[0].profiles
    )
    return is_root_extension or is_internally_defined


def field_label(element: Element) -> Label | None:
    """None when the element is suppressed (max of zero)."""
    if element.max == "0":
        return None
    return Label.OPTIONAL if element.max == "1" else Label.REPEATED


def is_required_by_fhir(element: Element) -> bool:
    return element.min == 1


def binding_value_set_url(element: Element) -> str | None:
    if element.binding is None or element.binding.strength != BindingStrength.REQUIRED:
        return None
    return element.binding.value_set.split("|", 1)[0] or None


def has_bound_code(element: Element) -> bool:
    return (
        distinct_type_codes(element) == ["code"]
        and binding_value_set_url(element) is not None
    )


def constraint_expressions(
    element: Element, severity: ConstraintSeverity
) -> tuple[str, ...]:
    return tuple(
        constraint.expression
        for constraint in element.constraints
        if constraint.expression
        and constraint.severity == severity
        and constraint.expression not in EXCLUDED_FHIR_CONSTRAINTS
    )
