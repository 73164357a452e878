"""
ProtoGenerator: the entry point that compiles definitions into file descriptors.

Usage:
    generator = ProtoGenerator(config, registry, ValueSetCodeSynthesizer(package, value_sets))
    datatypes = generator.generate_datatypes_file()
    patient = generator.generate_resource_file(registry.definition(PATIENT_URL))
"""

from __future__ import annotations

import logging
from typing import Iterable

from protogen.config import ProtogenConfig
from protogen.generator.codes import BoundCodeSynthesizer
from protogen.generator.contained import add_contained_resource
from protogen.generator.context import GenerationContext
from protogen.generator.naming import to_field_name_case
from protogen.generator.registry import DefinitionRegistry
from protogen.generator.search import SearchParameterTable
from protogen.generator.walker import generate_definition
from protogen.models.definitions import DefinitionKind, SchemaDefinition
from protogen.models.descriptors import FileDescriptor, MessageDescriptor

logger = logging.getLogger(__name__)

EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/Extension"

DATATYPES_TO_SKIP = frozenset(
    {
        "http://hl7.org/fhir/StructureDefinition/Reference",
        "http://hl7.org/fhir/StructureDefinition/Element",
        "http://hl7.org/fhir/StructureDefinition/elementdefinition-de",
        EXTENSION_URL,
    }
)

ANY_PROTO = "google/protobuf/any.proto"


class ProtoGenerator:
    """
    Generates message and file descriptors for definitions in a registry.

    Holds no mutable state: every call builds its own generation context, so
    one generator can serve concurrent calls for different definitions.
    """

    def __init__(
        self,
        config: ProtogenConfig,
        registry: DefinitionRegistry,
        bound_codes: BoundCodeSynthesizer,
        search_parameters: SearchParameterTable | None = None,
    ):
        self.config = config
        self.registry = registry
        self.bound_codes = bound_codes
        if search_parameters is None:
            search_parameters = SearchParameterTable({}, registry.resource_type_ids())
        self.search_parameters = search_parameters

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def generate_message(self, definition: SchemaDefinition) -> MessageDescriptor:
        ctx = GenerationContext.for_definition(
            definition,
            registry=self.registry,
            config=self.config,
            bound_codes=self.bound_codes,
            search_parameters=self.search_parameters,
        )
        return generate_definition(ctx)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @property
    def datatypes_file_name(self) -> str:
        return f"{self.config.source_directory}/datatypes.proto"

    def resource_file_name(self, definition: SchemaDefinition) -> str:
        type_name = self.registry.type_name(definition.url)
        return f"{self.config.source_directory}/resources/{to_field_name_case(type_name)}.proto"

    def _companion_dependencies(self) -> tuple[str, ...]:
        return (
            f"{self.config.annotation_path}/annotations.proto",
            f"{self.config.source_directory}/codes.proto",
            f"{self.config.source_directory}/valuesets.proto",
        )

    def _file_descriptor(
        self,
        name: str,
        messages: Iterable[MessageDescriptor],
        extra_dependencies: tuple[str, ...] = (),
    ) -> FileDescriptor:
        return FileDescriptor(
            name=name,
            package=self.config.proto_package,
            dependencies=self._companion_dependencies() + extra_dependencies,
            java_package=self.config.java_proto_package,
            java_multiple_files=bool(self.config.java_proto_package),
            go_package=self.config.go_proto_package,
            fhir_version=self.config.fhir_version,
            message_types=tuple(messages),
        )

    def datatype_definitions(self) -> list[SchemaDefinition]:
        """Primitive and complex types that belong in the datatypes file."""
        return [
            definition
            for definition in self.registry
            if definition.kind in (DefinitionKind.PRIMITIVE_TYPE, DefinitionKind.COMPLEX_TYPE)
            and definition.url not in DATATYPES_TO_SKIP
            and definition.base_definition != EXTENSION_URL
        ]

    def generate_datatypes_file(
        self, messages: Iterable[MessageDescriptor] | None = None
    ) -> FileDescriptor:
        """
        The datatypes file. Pass ``messages`` when the data types were already
        generated one by one, e.g. to leave out ones that failed.
        """
        if messages is None:
            messages = [self.generate_message(d) for d in self.datatype_definitions()]
        messages = list(messages)
        logger.info("Generating %s with %d types", self.datatypes_file_name, len(messages))
        return self._file_descriptor(self.datatypes_file_name, messages)

    def generate_resource_file(self, definition: SchemaDefinition) -> FileDescriptor:
        return self._file_descriptor(
            self.resource_file_name(definition),
            [self.generate_message(definition)],
            (self.datatypes_file_name, ANY_PROTO),
        )

    def add_contained_resource(
        self, file: FileDescriptor, resources: Iterable[MessageDescriptor]
    ) -> FileDescriptor:
        return add_contained_resource(file, resources)
