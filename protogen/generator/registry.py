"""
Lookup of every known schema definition.

Built once per compilation run and read-only afterwards, so it can be
shared across threads generating different definitions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator

from protogen.errors import MalformedInputError, UnrecognizedIdentityError, UnresolvedUrlError
from protogen.generator.naming import definition_type_name
from protogen.models.definitions import DefinitionKind, SchemaDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredDefinition:
    definition: SchemaDefinition
    # Name of the message generated for this definition, e.g. "UsCorePatient".
    type_name: str


class DefinitionRegistry:
    """
    Indexes definitions by url, and base (non-profile) definitions by id.

    Usage:
        registry = DefinitionRegistry(definitions)
        registry.type_name("http://hl7.org/fhir/StructureDefinition/Patient")
        registry.resolve_base_chain(profile_url)
    """

    def __init__(self, definitions: Iterable[SchemaDefinition]):
        by_url: dict[str, RegisteredDefinition] = {}
        for definition in definitions:
            if not definition.url:
                raise UnresolvedUrlError(
                    f"Invalid FHIR structure definition: {definition.id} has no url"
                )
            if definition.url in by_url:
                raise UnresolvedUrlError(f"Duplicate structure definition url: {definition.url}")
            by_url[definition.url] = RegisteredDefinition(
                definition, definition_type_name(definition)
            )

        for entry in by_url.values():
            definition = entry.definition
            if definition.is_profile and definition.base_definition not in by_url:
                raise UnresolvedUrlError(
                    f"Profile {definition.url} has unknown base definition: "
                    f"{definition.base_definition}"
                )

        base_by_id: dict[str, SchemaDefinition] = {}
        for entry in by_url.values():
            if not entry.definition.is_profile:
                base_by_id.setdefault(entry.definition.id, entry.definition)

        self._by_url = MappingProxyType(by_url)
        self._base_by_id = MappingProxyType(base_by_id)
        logger.info(
            "Registry built: %d definitions, %d base types", len(by_url), len(base_by_id)
        )

    def __len__(self) -> int:
        return len(self._by_url)

    def __contains__(self, url: object) -> bool:
        return url in self._by_url

    def __iter__(self) -> Iterator[SchemaDefinition]:
        return (entry.definition for entry in self._by_url.values())

    def get(self, url: str) -> RegisteredDefinition:
        try:
            return self._by_url[url]
        except KeyError:
            raise UnrecognizedIdentityError(url, f"Unrecognized resource URL: {url}") from None

    def definition(self, url: str) -> SchemaDefinition:
        return self.get(url).definition

    def type_name(self, url: str) -> str:
        return self.get(url).type_name

    def base_definition_by_id(self, definition_id: str) -> SchemaDefinition:
        try:
            return self._base_by_id[definition_id]
        except KeyError:
            raise MalformedInputError(
                f"Unknown StructureDefinition id: {definition_id}"
            ) from None

    def resolve_base_chain(self, url: str) -> tuple[SchemaDefinition, ...]:
        """
        The definition at ``url`` followed by each profile ancestor, ending with
        the first non-profile definition.
        """
        chain = [self.definition(url)]
        seen = {url}
        while chain[-1].is_profile:
            base_url = chain[-1].base_definition
            if base_url in seen:
                raise UnresolvedUrlError(f"Profile inheritance cycle through {base_url}")
            seen.add(base_url)
            chain.append(self.definition(base_url))
        return tuple(chain)

    def base_type_name(self, url: str) -> str:
        """Message name of the non-profile type a (possibly profiled) url resolves to."""
        return self.type_name(self.resolve_base_chain(url)[-1].url)

    def resource_type_ids(self) -> frozenset[str]:
        return frozenset(
            definition_id
            for definition_id, definition in self._base_by_id.items()
            if definition.kind == DefinitionKind.RESOURCE
        )
