"""Search-parameter lookup attached to resource messages."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable

from protogen.errors import UnrecognizedIdentityError
from protogen.models.descriptors import SearchParameter


class SearchParameterTable:
    def __init__(
        self,
        by_resource: dict[str, list[SearchParameter]],
        resource_types: Iterable[str],
    ):
        self.resource_types = frozenset(resource_types) | frozenset(by_resource)
        self._by_resource = MappingProxyType(
            {
                resource: tuple(sorted(parameters, key=lambda parameter: parameter.name))
                for resource, parameters in by_resource.items()
            }
        )

    @classmethod
    def from_parameters(
        cls,
        parameters: Iterable[tuple[Iterable[str], SearchParameter]],
        resource_types: Iterable[str] = (),
    ) -> SearchParameterTable:
        """Groups ``(base resource types, parameter)`` pairs by resource type."""
        by_resource: dict[str, list[SearchParameter]] = {}
        for bases, parameter in parameters:
            for base in bases:
                by_resource.setdefault(base, []).append(parameter)
        return cls(by_resource, resource_types)

    def for_resource(self, resource_type: str) -> tuple[SearchParameter, ...]:
        """Parameters for a resource type, sorted by name."""
        if resource_type not in self.resource_types:
            raise UnrecognizedIdentityError(
                resource_type, f"Encountered unrecognized resource id: {resource_type}"
            )
        return self._by_resource.get(resource_type, ())
