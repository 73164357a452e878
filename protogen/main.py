"""
FastAPI application entrypoint.

Run locally:  uvicorn protogen.main:app --reload
"""

import logging

from fastapi import FastAPI

from protogen.api.routes import router
from protogen.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(levelname)s | %(name)s | %(message)s",
)

app = FastAPI(
    title="FHIR Proto Generator API",
    description=(
        "Compiles FHIR StructureDefinitions into protocol buffer descriptors: "
        "nested messages, choice-type oneofs, bound-code enums, reserved tags "
        "and a ContainedResource union."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api/v1")
