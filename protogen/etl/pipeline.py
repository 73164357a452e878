"""
Batch compile pipeline: FHIR definitions in, file descriptors out.

Demonstrates:
- A build_registry -> generate -> assemble_contained -> summarize DAG
- Per-definition failure isolation: a definition that cannot be compiled is
  logged and recorded, the rest of the batch still completes
- Non-fatal diagnostics (unsupported slicing) reported alongside the output
"""

from __future__ import annotations

import logging
from typing import Any

from protogen.config import ProtogenConfig
from protogen.errors import MalformedInputError, ProtogenError
from protogen.etl.dag import DAG
from protogen.generator.codes import ValueSetCodeSynthesizer
from protogen.generator.compiler import ProtoGenerator
from protogen.generator.registry import DefinitionRegistry
from protogen.generator.search import SearchParameterTable
from protogen.models.definitions import DefinitionKind, SchemaDefinition
from protogen.models.descriptors import FileDescriptor, collect_diagnostics
from protogen.services.definitions import parse_search_parameter, parse_structure_definition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pipeline stages (each receives and returns a context dict)
# ---------------------------------------------------------------------------


def build_registry(context: dict[str, Any]) -> dict[str, Any]:
    """
    Parse the input documents and build the shared, read-only lookups.
    Documents that fail validation are set aside; a registry that cannot be
    built (missing profile base, duplicate url) fails the whole run.
    """
    config: ProtogenConfig = context.get("config") or ProtogenConfig.from_settings()

    definitions: list[SchemaDefinition] = list(context.get("definitions", []))
    rejected: list[dict[str, str]] = []
    for document in context.get("structure_definitions", []):
        try:
            definitions.append(parse_structure_definition(document))
        except MalformedInputError as exc:
            logger.warning("Rejected structure definition: %s", exc)
            rejected.append({"url": document.get("url", ""), "error": str(exc)})

    registry = DefinitionRegistry(definitions)
    search_parameters = SearchParameterTable.from_parameters(
        (parse_search_parameter(document) for document in context.get("search_parameters", [])),
        registry.resource_type_ids(),
    )
    generator = ProtoGenerator(
        config,
        registry,
        ValueSetCodeSynthesizer(config.proto_package, context.get("value_sets", {})),
        search_parameters,
    )
    return {"generator": generator, "rejected": rejected, "definition_count": len(registry)}


def generate_datatypes(context: dict[str, Any]) -> dict[str, Any]:
    """One shared file for every data type; a type that fails is left out of it."""
    generator: ProtoGenerator = context["generator"]
    messages = []
    failures: list[dict[str, str]] = []

    for definition in generator.datatype_definitions():
        try:
            messages.append(generator.generate_message(definition))
        except ProtogenError as exc:
            logger.error("Could not compile %s: %s", definition.url, exc)
            failures.append(
                {"url": definition.url, "error": f"{type(exc).__name__}: {exc}"}
            )

    if not messages:
        logger.info("No data types in this batch")
        return {"datatypes_file": None, "datatype_failures": failures}
    return {
        "datatypes_file": generator.generate_datatypes_file(messages),
        "datatype_failures": failures,
    }


def generate_resources(context: dict[str, Any]) -> dict[str, Any]:
    """One file per resource definition; failures are recorded per definition."""
    generator: ProtoGenerator = context["generator"]
    resource_files: dict[str, FileDescriptor] = {}
    failures: list[dict[str, str]] = []

    for definition in generator.registry:
        if definition.kind != DefinitionKind.RESOURCE:
            continue
        try:
            resource_files[definition.url] = generator.generate_resource_file(definition)
        except ProtogenError as exc:
            logger.error("Could not compile %s: %s", definition.url, exc)
            failures.append(
                {"url": definition.url, "error": f"{type(exc).__name__}: {exc}"}
            )

    logger.info("Resources: %d compiled, %d failed", len(resource_files), len(failures))
    return {"resource_files": resource_files, "failures": failures}


def assemble_contained(context: dict[str, Any]) -> dict[str, Any]:
    """
    Append the ContainedResource union to the host resource's file. The host
    then depends on every other resource file.
    """
    generator: ProtoGenerator = context["generator"]
    resource_files: dict[str, FileDescriptor] = dict(context.get("resource_files", {}))
    host_id = generator.config.contained_resource_host

    base_resources = {
        url: file
        for url, file in resource_files.items()
        if not generator.registry.definition(url).is_profile
    }
    host_url = next(
        (url for url in base_resources if generator.registry.definition(url).id == host_id), None
    )
    if host_url is None:
        logger.warning("Contained resource host %s not compiled; skipping union", host_id)
        return {"resource_files": resource_files, "contained_resource_count": 0}

    host = resource_files[host_url]
    messages = [message for file in base_resources.values() for message in file.message_types]
    host = generator.add_contained_resource(host, messages)
    extra = sorted(
        file.name
        for url, file in base_resources.items()
        if url != host_url and file.name not in host.dependencies
    )
    resource_files[host_url] = host.model_copy(
        update={"dependencies": host.dependencies + tuple(extra)}
    )
    contained = host.message_type("ContainedResource")
    return {"resource_files": resource_files, "contained_resource_count": len(contained.fields)}


def summarize(context: dict[str, Any]) -> dict[str, Any]:
    files: list[FileDescriptor] = []
    if context.get("datatypes_file") is not None:
        files.append(context["datatypes_file"])
    files.extend(context.get("resource_files", {}).values())

    diagnostics = [
        {"file": file.name, **diagnostic.model_dump(mode="json")}
        for file in files
        for message in file.message_types
        for diagnostic in collect_diagnostics(message)
    ]
    if diagnostics:
        logger.warning("%d unsupported slicing placeholders reserved", len(diagnostics))
    return {
        "files": files,
        "file_names": [file.name for file in files],
        "diagnostics": diagnostics,
        "file_count": len(files),
        "failure_count": len(context.get("datatype_failures", []))
        + len(context.get("failures", [])),
        "rejected_count": len(context.get("rejected", [])),
    }


# ---------------------------------------------------------------------------
# Pipeline factory
# ---------------------------------------------------------------------------


def build_compile_pipeline() -> DAG:
    dag = DAG("fhir_proto_compile")
    dag.add_stage("build_registry", build_registry)
    dag.add_stage("generate_datatypes", generate_datatypes, depends_on=["build_registry"])
    dag.add_stage("generate_resources", generate_resources, depends_on=["build_registry"])
    dag.add_stage("assemble_contained", assemble_contained, depends_on=["generate_resources"])
    dag.add_stage(
        "summarize", summarize, depends_on=["generate_datatypes", "assemble_contained"]
    )
    return dag
