"""Per-definition generation context passed into every recursive call."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from protogen.config import ProtogenConfig
from protogen.errors import MalformedInputError
from protogen.generator.codes import BoundCodeSynthesizer
from protogen.generator.registry import DefinitionRegistry
from protogen.generator.search import SearchParameterTable
from protogen.models.definitions import DefinitionKind, Element, SchemaDefinition

FHIR_TYPE_EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/structuredefinition-fhir-type"

_ID_ELEMENT = re.compile(r"[A-Za-z]*\.id")


@dataclass(frozen=True)
class GenerationContext:
    registry: DefinitionRegistry
    config: ProtogenConfig
    definition: SchemaDefinition
    elements: tuple[Element, ...]
    bound_codes: BoundCodeSynthesizer
    search_parameters: SearchParameterTable
    _by_id: Mapping[str, tuple[Element, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        index: dict[str, list[Element]] = {}
        for element in self.elements:
            index.setdefault(element.id, []).append(element)
        object.__setattr__(
            self,
            "_by_id",
            MappingProxyType({key: tuple(value) for key, value in index.items()}),
        )

    @classmethod
    def for_definition(
        cls,
        definition: SchemaDefinition,
        *,
        registry: DefinitionRegistry,
        config: ProtogenConfig,
        bound_codes: BoundCodeSynthesizer,
        search_parameters: SearchParameterTable,
    ) -> GenerationContext:
        return cls(
            registry=registry,
            config=config,
            definition=definition,
            elements=_fix_id_types(definition),
            bound_codes=bound_codes,
            search_parameters=search_parameters,
        )

    @property
    def root(self) -> Element:
        return self.elements[0]

    def element_by_id(self, element_id: str) -> Element:
        matches = self._by_id.get(element_id, ())
        if len(matches) != 1:
            raise MalformedInputError(
                f"Expected exactly one element with id {element_id} in "
                f"{self.definition.url}, found {len(matches)}"
            )
        return matches[0]

    def find_element(self, element_id: str) -> Element | None:
        matches = self._by_id.get(element_id, ())
        return matches[0] if len(matches) == 1 else None


def _fix_id_types(definition: SchemaDefinition) -> tuple[Element, ...]:
    """
    Resource ids are type "id" and data type ids are type "string"; several
    FHIR releases get the fhir-type extension on these elements wrong.
    """
    fixed_type = "id" if definition.kind == DefinitionKind.RESOURCE else "string"
    elements = []
    for element in definition.elements:
        if _ID_ELEMENT.fullmatch(element.id) and element.types:
            first = element.types[0]
            extensions = tuple(
                ext.model_copy(update={"value": fixed_type})
                if ext.url == FHIR_TYPE_EXTENSION_URL
                else ext
                for ext in first.extensions
            )
            if extensions != first.extensions:
                first = first.model_copy(update={"extensions": extensions})
                element = element.model_copy(update={"types": (first,) + element.types[1:]})
        elements.append(element)
    return tuple(elements)
