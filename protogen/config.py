import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()


class Settings:
    PROTO_PACKAGE: str = os.getenv("PROTO_PACKAGE", "google.fhir.r4.core")
    JAVA_PROTO_PACKAGE: str = os.getenv("JAVA_PROTO_PACKAGE", "com.google.fhir.r4.core")
    GO_PROTO_PACKAGE: str = os.getenv("GO_PROTO_PACKAGE", "")
    FHIR_VERSION: str = os.getenv("FHIR_VERSION", "R4")
    SOURCE_DIRECTORY: str = os.getenv("SOURCE_DIRECTORY", "proto/google/fhir/proto/r4/core")
    ANNOTATION_PATH: str = os.getenv("ANNOTATION_PATH", "proto/google/fhir/proto")
    CONTAINED_RESOURCE_HOST: str = os.getenv("CONTAINED_RESOURCE_HOST", "Bundle")
    TYPED_REFERENCES: bool = os.getenv("TYPED_REFERENCES", "false").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()


class ProtogenConfig(BaseModel):
    """Per-run generation settings: where the output lives and how it is named."""

    model_config = ConfigDict(frozen=True)

    proto_package: str = "google.fhir.r4.core"
    java_proto_package: str = ""
    go_proto_package: str = ""
    fhir_version: str = "R4"
    source_directory: str = "proto/google/fhir/proto/r4/core"
    annotation_path: str = "proto/google/fhir/proto"
    # Resource whose "Resource"-typed fields use the ContainedResource union
    # instead of google.protobuf.Any.
    contained_resource_host: str = "Bundle"
    typed_references: bool = False

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "ProtogenConfig":
        return cls(
            proto_package=source.PROTO_PACKAGE,
            java_proto_package=source.JAVA_PROTO_PACKAGE,
            go_proto_package=source.GO_PROTO_PACKAGE,
            fhir_version=source.FHIR_VERSION,
            source_directory=source.SOURCE_DIRECTORY,
            annotation_path=source.ANNOTATION_PATH,
            contained_resource_host=source.CONTAINED_RESOURCE_HOST,
            typed_references=source.TYPED_REFERENCES,
        )
