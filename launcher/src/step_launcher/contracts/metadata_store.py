from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from step_launcher.contracts.metadata import (
    Artifact,
    ArtifactType,
    Context,
    ContextType,
    Event,
    Execution,
    ExecutionType,
)


@dataclass(frozen=True, slots=True)
class ArtifactAndEvent:
    """An artifact to link to an execution, and the event describing the link."""

    event: Event
    artifact: Artifact | None = None


@runtime_checkable
class MetadataStoreService(Protocol):
    """
    Facade contract for the remote lineage store.

    Missing entities are reported by raising MetadataNotFoundError; every other
    backend failure propagates as raised by the backend.
    """

    def get_context_by_type_and_name(self, type_name: str, context_name: str) -> Context | None:
        """
        Return the context, or None when the store answers without one.

        Raises MetadataNotFoundError while the context type is unregistered.
        """
        ...

    def get_context_type(self, type_name: str) -> ContextType:
        """Return the context type or raise MetadataNotFoundError."""
        ...

    def put_context_type(self, context_type: ContextType) -> int:
        """Register a context type and return its id."""
        ...

    def put_contexts(self, contexts: Sequence[Context]) -> list[int]:
        """Insert contexts and return their ids."""
        ...

    def get_execution_type(self, type_name: str) -> ExecutionType:
        """Return the execution type or raise MetadataNotFoundError."""
        ...

    def put_execution_type(self, execution_type: ExecutionType) -> int:
        """Register an execution type (idempotent) and return its id."""
        ...

    def put_execution(
        self,
        execution: Execution,
        *,
        artifact_event_pairs: Sequence[ArtifactAndEvent] = (),
        contexts: Sequence[Context] = (),
    ) -> int:
        """Insert an execution with its events and context links; return its id."""
        ...

    def get_executions_by_id(self, execution_ids: Sequence[int]) -> list[Execution]:
        """Return executions for the given ids."""
        ...

    def put_artifact_type(self, artifact_type: ArtifactType) -> int:
        """Register an artifact type (idempotent) and return its id."""
        ...

    def put_artifacts(self, artifacts: Sequence[Artifact]) -> list[int]:
        """Insert artifacts and return their ids."""
        ...

    def get_artifacts_by_id(self, artifact_ids: Sequence[int]) -> list[Artifact]:
        """Return artifacts for the given ids."""
        ...

    def close(self) -> None:
        """Release the connection to the store."""
        ...
