"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Compile
# ---------------------------------------------------------------------------

class ConfigOverrides(BaseModel):
    """Per-request changes to the server's default generation settings."""
    proto_package: str | None = None
    java_proto_package: str | None = None
    go_proto_package: str | None = None
    fhir_version: str | None = Field(None, pattern="^(DSTU2|STU3|R4|R5)$")
    source_directory: str | None = None
    annotation_path: str | None = None
    contained_resource_host: str | None = None
    typed_references: bool | None = None


class CompileRequest(BaseModel):
    """FHIR JSON documents to compile into proto descriptors."""
    structure_definitions: list[dict[str, Any]] = Field(..., min_length=1, max_length=5000)
    search_parameters: list[dict[str, Any]] = []
    # value-set url -> codes, for code fields with a required binding
    value_sets: dict[str, list[str]] = {}
    config: ConfigOverrides | None = None


class StageSummary(BaseModel):
    status: str
    duration_ms: float | None = None
    error: str | None = None


class CompiledFile(BaseModel):
    name: str
    message_types: list[str]
    # base64 of a serialized google.protobuf.FileDescriptorProto
    descriptor: str


class CompileResult(BaseModel):
    pipeline: str
    status: str
    stages: dict[str, StageSummary]
    files: list[CompiledFile] = []
    failures: list[dict[str, str]] = []
    rejected: list[dict[str, str]] = []
    diagnostics: list[dict[str, Any]] = []


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    proto_package: str
    fhir_version: str
