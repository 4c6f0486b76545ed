from __future__ import annotations

from step_launcher.metadata.client import (
    CONTAINER_EXECUTION_TYPE_NAME,
    PIPELINE_CONTEXT_TYPE_NAME,
    PIPELINE_RUN_CONTEXT_TYPE_NAME,
    MetadataClient,
    PipelineContexts,
    schema_to_artifact_type,
)
from step_launcher.metadata.fakes import FakeMetadataStore, MetadataCall
from step_launcher.metadata.grpc_store import GrpcMetadataStore

__all__ = [
    "CONTAINER_EXECUTION_TYPE_NAME",
    "PIPELINE_CONTEXT_TYPE_NAME",
    "PIPELINE_RUN_CONTEXT_TYPE_NAME",
    "FakeMetadataStore",
    "GrpcMetadataStore",
    "MetadataCall",
    "MetadataClient",
    "PipelineContexts",
    "schema_to_artifact_type",
]
