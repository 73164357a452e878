"""
FastAPI routes – the HTTP surface of the compiler.

Demonstrates:
- Running the compile DAG from an HTTP trigger
- Mapping generator errors to client errors (422) instead of 500s
- Returning binary descriptors as base64 inside a typed JSON response
"""

from __future__ import annotations

import base64
import logging

from fastapi import APIRouter, HTTPException

from protogen.config import ProtogenConfig, settings
from protogen.etl.pipeline import build_compile_pipeline
from protogen.schemas.api import (
    CompiledFile,
    CompileRequest,
    CompileResult,
    HealthResponse,
    StageSummary,
)
from protogen.services.encoding import serialize_file

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check():
    config = ProtogenConfig.from_settings()
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        proto_package=config.proto_package,
        fhir_version=config.fhir_version,
    )


# ---------------------------------------------------------------------------
# Compile
# ---------------------------------------------------------------------------

@router.post("/compile", response_model=CompileResult)
def compile_definitions(request: CompileRequest):
    """
    Compile a batch of StructureDefinitions. Individual resources that fail
    are reported in ``failures``; a batch whose registry cannot be built
    (e.g. a profile whose base is missing) is rejected with 422.
    """
    config = ProtogenConfig.from_settings()
    if request.config is not None:
        config = config.model_copy(update=request.config.model_dump(exclude_none=True))

    pipeline = build_compile_pipeline()
    result = pipeline.run(
        initial_context={
            "config": config,
            "structure_definitions": request.structure_definitions,
            "search_parameters": request.search_parameters,
            "value_sets": request.value_sets,
        }
    )

    registry_stage = pipeline.stages["build_registry"]
    if registry_stage.error is not None:
        raise HTTPException(status_code=422, detail=registry_stage.error)

    summary = pipeline.output_of("summarize")
    files = [
        CompiledFile(
            name=file.name,
            message_types=[message.name for message in file.message_types],
            descriptor=base64.b64encode(serialize_file(file)).decode("ascii"),
        )
        for file in summary.get("files", [])
    ]
    logger.info("Compiled %d files (%s)", len(files), result["status"])

    return CompileResult(
        pipeline=result["pipeline"],
        status=result["status"],
        stages={name: StageSummary(**info) for name, info in result["stages"].items()},
        files=files,
        failures=pipeline.output_of("generate_datatypes").get("datatype_failures", [])
        + pipeline.output_of("generate_resources").get("failures", []),
        rejected=pipeline.output_of("build_registry").get("rejected", []),
        diagnostics=summary.get("diagnostics", []),
    )
