from .errors import (
    ConfigError,
    LauncherError,
    MetadataInvariantError,
    MetadataNotFoundError,
    SchemaTitleError,
    StorageRootError,
)
from .launch_result import LaunchPhase, LaunchResult
from .metadata import (
    Artifact,
    ArtifactType,
    Context,
    ContextType,
    Event,
    Execution,
    ExecutionType,
    Value,
)
from .metadata_store import ArtifactAndEvent, MetadataStoreService
from .object_store import ObjectStore, ObjectWriter
from .options import LauncherOptions
from .runtime_info import (
    InputArtifact,
    InputParameter,
    OutputArtifact,
    OutputParameter,
    RuntimeInfo,
    decode_runtime_info,
)

__all__ = [
    "ConfigError",
    "LauncherError",
    "MetadataInvariantError",
    "MetadataNotFoundError",
    "SchemaTitleError",
    "StorageRootError",
    "LaunchPhase",
    "LaunchResult",
    "Artifact",
    "ArtifactType",
    "Context",
    "ContextType",
    "Event",
    "Execution",
    "ExecutionType",
    "Value",
    "ArtifactAndEvent",
    "MetadataStoreService",
    "ObjectStore",
    "ObjectWriter",
    "LauncherOptions",
    "InputArtifact",
    "InputParameter",
    "OutputArtifact",
    "OutputParameter",
    "RuntimeInfo",
    "decode_runtime_info",
]
