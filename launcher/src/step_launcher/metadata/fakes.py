from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from step_launcher.contracts.errors import MetadataNotFoundError
from step_launcher.contracts.metadata import (
    Artifact,
    ArtifactType,
    Context,
    ContextType,
    Event,
    Execution,
    ExecutionType,
)
from step_launcher.contracts.metadata_store import ArtifactAndEvent

_MUTATING_CALLS = frozenset(
    {
        "put_context_type",
        "put_contexts",
        "put_execution_type",
        "put_execution",
        "put_artifact_type",
        "put_artifacts",
    }
)


@dataclass(frozen=True, slots=True)
class MetadataCall:
    """Record of a metadata store call for assertions in tests."""

    name: str
    kwargs: dict[str, Any]

    @property
    def mutating(self) -> bool:
        return self.name in _MUTATING_CALLS


class FakeMetadataStore:
    """
    In-memory MetadataStoreService for unit tests.

    Types are registered idempotently by name; contexts are unique per
    (type, name). Looking up a context of an unregistered type raises
    MetadataNotFoundError, as ML Metadata does. `empty_context_lookups` makes
    that many context lookups answer with an empty context, the way some store
    versions do for a missing context.
    """

    def __init__(self, *, empty_context_lookups: int = 0) -> None:
        self.context_types: dict[str, ContextType] = {}
        self.execution_types: dict[str, ExecutionType] = {}
        self.artifact_types: dict[str, ArtifactType] = {}
        self.contexts: dict[int, Context] = {}
        self.executions: dict[int, Execution] = {}
        self.artifacts: dict[int, Artifact] = {}
        self.events: list[Event] = []
        self.attributions: list[tuple[int, int]] = []
        self.associations: list[tuple[int, int]] = []
        self.closed = False
        self._empty_context_lookups = empty_context_lookups
        self._ids = itertools.count(1)
        self._clock = itertools.count(1_700_000_000_000)
        self._calls: list[MetadataCall] = []

    @property
    def calls(self) -> list[MetadataCall]:
        """Return the recorded calls in order."""
        return list(self._calls)

    def call_names(self) -> list[str]:
        return [call.name for call in self._calls]

    def get_context_by_type_and_name(self, type_name: str, context_name: str) -> Context | None:
        self._record("get_context_by_type_and_name", type_name=type_name, context_name=context_name)
        if self._empty_context_lookups > 0:
            self._empty_context_lookups -= 1
            return Context()
        context_type = self.context_types.get(type_name)
        if context_type is None:
            raise MetadataNotFoundError(f"No type found: {type_name}")
        for context in self.contexts.values():
            if context.type_id == context_type.id and context.name == context_name:
                return context.model_copy(deep=True)
        return None

    def get_context_type(self, type_name: str) -> ContextType:
        self._record("get_context_type", type_name=type_name)
        try:
            return self.context_types[type_name].model_copy()
        except KeyError as e:
            raise MetadataNotFoundError(f"Context type {type_name!r} not found") from e

    def put_context_type(self, context_type: ContextType) -> int:
        self._record("put_context_type", name=context_type.name)
        return self._register_type(self.context_types, context_type).id

    def put_contexts(self, contexts: Sequence[Context]) -> list[int]:
        self._record("put_contexts", names=[context.name for context in contexts])
        ids: list[int] = []
        for context in contexts:
            for existing in self.contexts.values():
                if existing.type_id == context.type_id and existing.name == context.name:
                    raise ValueError(f"Context {context.name!r} already exists")
            ids.append(self._insert(self.contexts, context))
        return ids

    def get_execution_type(self, type_name: str) -> ExecutionType:
        self._record("get_execution_type", type_name=type_name)
        try:
            return self.execution_types[type_name].model_copy()
        except KeyError as e:
            raise MetadataNotFoundError(f"Execution type {type_name!r} not found") from e

    def put_execution_type(self, execution_type: ExecutionType) -> int:
        self._record("put_execution_type", name=execution_type.name)
        return self._register_type(self.execution_types, execution_type).id

    def put_execution(
        self,
        execution: Execution,
        *,
        artifact_event_pairs: Sequence[ArtifactAndEvent] = (),
        contexts: Sequence[Context] = (),
    ) -> int:
        self._record(
            "put_execution",
            events=[pair.event.type for pair in artifact_event_pairs],
            contexts=[context.id for context in contexts],
        )
        execution_id = self._insert(self.executions, execution)
        for pair in artifact_event_pairs:
            artifact_id = pair.event.artifact_id
            if pair.artifact is not None:
                artifact_id = self._insert(self.artifacts, pair.artifact)
            event = pair.event.model_copy(
                update={"artifact_id": artifact_id, "execution_id": execution_id}
            )
            self.events.append(event)
            for context in contexts:
                self.attributions.append((context.id, artifact_id))
        for context in contexts:
            self.associations.append((context.id, execution_id))
        return execution_id

    def get_executions_by_id(self, execution_ids: Sequence[int]) -> list[Execution]:
        self._record("get_executions_by_id", ids=list(execution_ids))
        found = [i for i in execution_ids if i in self.executions]
        return [self.executions[i].model_copy(deep=True) for i in found]

    def put_artifact_type(self, artifact_type: ArtifactType) -> int:
        self._record("put_artifact_type", name=artifact_type.name)
        return self._register_type(self.artifact_types, artifact_type).id

    def put_artifacts(self, artifacts: Sequence[Artifact]) -> list[int]:
        self._record("put_artifacts", uris=[artifact.uri for artifact in artifacts])
        return [self._insert(self.artifacts, artifact) for artifact in artifacts]

    def get_artifacts_by_id(self, artifact_ids: Sequence[int]) -> list[Artifact]:
        self._record("get_artifacts_by_id", ids=list(artifact_ids))
        found = [i for i in artifact_ids if i in self.artifacts]
        return [self.artifacts[i].model_copy(deep=True) for i in found]

    def close(self) -> None:
        self._record("close")
        self.closed = True

    def _register_type(self, registry: dict[str, Any], new_type: Any) -> Any:
        existing = registry.get(new_type.name)
        if existing is not None:
            return existing
        stored = new_type.model_copy(update={"id": next(self._ids)})
        registry[stored.name] = stored
        return stored

    def _insert(self, table: dict[int, Any], record: Any) -> int:
        now = next(self._clock)
        record_id = record.id if record.id is not None else next(self._ids)
        table[record_id] = record.model_copy(
            deep=True,
            update={
                "id": record_id,
                "create_time_since_epoch": record.create_time_since_epoch or now,
                "last_update_time_since_epoch": now,
            },
        )
        return record_id

    def _record(self, name: str, /, **kwargs: Any) -> None:
        self._calls.append(MetadataCall(name=name, kwargs=kwargs))
