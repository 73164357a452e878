"""
Name and type resolution for elements.

Container names are derived from element ids (``Medication.package.content``
becomes ``Medication.Package.Content``), but any ancestor may have been
renamed with an explicit-type-name extension, and nested names that would
shadow an enclosing name get a ``Type`` suffix.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from protogen.errors import (
    AmbiguousRenameError,
    ContentReferenceCycleError,
    MalformedInputError,
    UnrecognizedIdentityError,
)
from protogen.generator.context import FHIR_TYPE_EXTENSION_URL, GenerationContext
from protogen.generator.elements import (
    FHIRPATH_TYPE_PREFIX,
    distinct_type_codes,
    element_by_id,
    has_bound_code,
    is_choice_type,
    is_container,
    is_supported_for_slicing,
)
from protogen.generator.naming import (
    EXPLICIT_TYPE_NAME_EXTENSION_URL,
    definition_type_name,
    hyphen_to_camel,
    last_id_token,
    parent_id,
    to_field_type_case,
)
from protogen.models.definitions import Element, TypeReference


class ElementShape(Enum):
    """How an element's field type is derived, checked in declaration order."""

    BOUND_CODE = "bound_code"
    CHOICE = "choice"
    CONTAINER = "container"
    CONTENT_REFERENCE = "content_reference"
    REFERENCE = "reference"
    SCALAR = "scalar"


@dataclass(frozen=True)
class QualifiedType:
    name: str
    package: str

    @property
    def qualified(self) -> str:
        return f".{self.package}.{self.name}"

    def child(self, name: str) -> QualifiedType:
        return QualifiedType(f"{self.name}.{name}", self.package)


def element_shape(element: Element) -> ElementShape:
    if has_bound_code(element):
        return ElementShape.BOUND_CODE
    if is_choice_type(element):
        return ElementShape.CHOICE
    if is_container(element):
        return ElementShape.CONTAINER
    if element.content_reference is not None:
        return ElementShape.CONTENT_REFERENCE
    if element.types and element.types[0].code == "Reference":
        return ElementShape.REFERENCE
    return ElementShape.SCALAR


def name_for_element(ctx: GenerationContext, element: Element) -> str:
    """The FHIR field name for an element; slices are named after the slice."""
    if element.id == ctx.root.id:
        return definition_type_name(ctx.definition)
    token = last_id_token(element.id)
    if token.slicename is not None and not token.is_choice_type:
        return hyphen_to_camel(token.slicename)
    return hyphen_to_camel(token.pathpart)


def container_type_name(
    ctx: GenerationContext, element: Element, _visited: frozenset[str] = frozenset()
) -> str:
    """Full message name for an element, minus the package, e.g. ``Bundle.Entry.Request``."""
    if element.content_reference is not None:
        if element.id in _visited:
            raise ContentReferenceCycleError(
                f"Content reference cycle through {element.id} ({element.content_reference})"
            )
        referenced_id = element.content_reference.removeprefix("#")
        referenced = ctx.element_by_id(referenced_id)
        if not is_container(referenced):
            raise MalformedInputError(
                f"ContentReference does not reference a container: {element.content_reference}"
            )
        if last_id_token(referenced_id).slicename is not None and not is_supported_for_slicing(
            referenced
        ):
            # Unsupported slices are not generated; use the sliced field instead.
            referenced = ctx.element_by_id(referenced_id[: referenced_id.rindex(":")])
        return container_type_name(ctx, referenced, _visited | {element.id})

    renames = element.extensions_with_url(EXPLICIT_TYPE_NAME_EXTENSION_URL)
    if len(renames) > 1:
        raise AmbiguousRenameError(f"Element has multiple explicit type names: {element.id}")

    type_name = to_field_type_case(renames[0].value if renames else name_for_element(ctx, element))
    if is_choice_type(element):
        type_name += "X"

    parent = parent_id(element.id)
    package = ""
    if parent is not None:
        package = container_type_name(ctx, ctx.element_by_id(parent), _visited) + "."

    if (
        package.startswith(type_name + ".")
        or f".{type_name}." in package
        or (type_name == "Code" and parent is not None)
    ):
        type_name += "Type"
    return package + type_name


def bound_code_type(ctx: GenerationContext, element: Element) -> QualifiedType | None:
    if not has_bound_code(element):
        return None
    name = container_type_name(ctx, element)
    # CodeCode and CodeTypeCode read badly.
    if not name.endswith("Code") and not name.endswith(".CodeType"):
        name += "Code"
    return QualifiedType(name, ctx.config.proto_package)


def normalize_type(ctx: GenerationContext, type_ref: TypeReference) -> str:
    """The message name for a declared type, following profiles through the registry."""
    code = type_ref.code
    if code.startswith(FHIRPATH_TYPE_PREFIX):
        for extension in type_ref.extensions:
            if extension.url == FHIR_TYPE_EXTENSION_URL:
                return to_field_type_case(extension.value)
        return to_field_type_case(code.removeprefix(FHIRPATH_TYPE_PREFIX).rsplit(".", 1)[-1])
    if not type_ref.profiles or not type_ref.profiles[0]:
        return to_field_type_case(code)
    profile_url = type_ref.profiles[0]
    if profile_url not in ctx.registry:
        raise UnrecognizedIdentityError(
            profile_url, f"Unable to deduce typename for profile: {profile_url} on {code}"
        )
    return ctx.registry.type_name(profile_url)


def typed_reference_name(ctx: GenerationContext, types: tuple[TypeReference, ...]) -> str:
    """``PatientOrGroupReference`` for a reference constrained to Patient and Group."""
    targets = sorted({url for type_ref in types for url in type_ref.target_profiles if url})
    names = []
    for url in targets:
        if url not in ctx.registry:
            raise UnrecognizedIdentityError(url, f"Unsupported reference profile: {url}")
        names.append(ctx.registry.type_name(url))
    reference_type = "Or".join(names)
    if reference_type and reference_type != "Resource":
        return reference_type + "Reference"
    return "Reference"


def qualified_field_type(ctx: GenerationContext, element: Element) -> QualifiedType:
    """Field type and package of a potentially complex element."""
    package = ctx.config.proto_package
    shape = element_shape(element)

    if shape is ElementShape.BOUND_CODE:
        return bound_code_type(ctx, element)
    if shape in (ElementShape.CHOICE, ElementShape.CONTAINER, ElementShape.CONTENT_REFERENCE):
        return QualifiedType(container_type_name(ctx, element), package)
    if shape is ElementShape.REFERENCE:
        if ctx.config.typed_references:
            return QualifiedType(typed_reference_name(ctx, element.types), package)
        return QualifiedType("Reference", package)

    if len(distinct_type_codes(element)) != 1:
        raise MalformedInputError(
            f"Unknown multiple type definition on element: {element.id}"
        )
    normalized = normalize_type(ctx, element.types[0])
    # The xhtml id is mistyped in the core definitions.
    if element.id == "xhtml.id":
        normalized = "String"

    if normalized == "Resource":
        # Only the contained-resource host references the union of every
        # resource; everywhere else uses Any to avoid a dependency cycle.
        if ctx.root.id == ctx.config.contained_resource_host:
            return QualifiedType("ContainedResource", package)
        return QualifiedType("Any", "google.protobuf")
    return QualifiedType(normalized, package)


def choice_type_base(ctx: GenerationContext, element: Element) -> Element | None:
    """
    The choice element on a base type that this element specializes, if any.
    Walks up base paths until reaching a choice element or a root.
    """
    base_path = element.base_path
    # Single-typed extension values are inlined, never wrapped in a choice.
    if not base_path or base_path == "Extension.value[x]":
        return None
    base_type = base_path.split(".", 1)[0]
    if base_path.endswith("[x]"):
        base_definition = ctx.registry.base_definition_by_id(base_type)
        return element_by_id(base_path, base_definition.elements)
    if base_type == "Element":
        return None
    base_definition = ctx.registry.base_definition_by_id(base_type)
    base_element = element_by_id(base_path, base_definition.elements)
    if base_element.id == element.id:
        # Elements that inherit from nothing list themselves as their base.
        return None
    return choice_type_base(ctx, base_element)
