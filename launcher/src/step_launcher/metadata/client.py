"""
Metadata client: idempotent registration of lineage against a metadata store.

Contexts and types are get-or-create; artifacts and executions are inserted
and then read back so callers hold the server's copy (ids, timestamps).
Backend errors propagate unchanged; nothing here retries.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import yaml

from step_launcher.contracts.errors import (
    ConfigError,
    MetadataInvariantError,
    MetadataNotFoundError,
    SchemaTitleError,
)
from step_launcher.contracts.metadata import (
    Artifact,
    ArtifactType,
    Context,
    ContextType,
    Event,
    Execution,
    ExecutionType,
    Value,
)
from step_launcher.contracts.metadata_store import ArtifactAndEvent, MetadataStoreService

PIPELINE_CONTEXT_TYPE_NAME = "kfp.Pipeline"
PIPELINE_RUN_CONTEXT_TYPE_NAME = "kfp.PipelineRun"
CONTAINER_EXECUTION_TYPE_NAME = "kfp.ContainerExecution"

_logger = logging.getLogger("step_launcher.metadata")


@dataclass(frozen=True, slots=True)
class PipelineContexts:
    pipeline: Context
    pipeline_run: Context

    @property
    def contexts(self) -> tuple[Context, Context]:
        return (self.pipeline, self.pipeline_run)


class MetadataClient:
    def __init__(self, service: MetadataStoreService) -> None:
        self._service = service
        # Types carry no declared properties so they can evolve freely.
        self.pipeline_context_type = ContextType(name=PIPELINE_CONTEXT_TYPE_NAME)
        self.pipeline_run_context_type = ContextType(name=PIPELINE_RUN_CONTEXT_TYPE_NAME)
        self.container_execution_type = ExecutionType(name=CONTAINER_EXECUTION_TYPE_NAME)
        self._pipelines: dict[tuple[str, str], PipelineContexts] = {}

    def close(self) -> None:
        self._service.close()

    def get_pipeline(self, pipeline_name: str, pipeline_run_id: str) -> PipelineContexts:
        """Return the pipeline and pipeline-run contexts, creating them on first use."""
        cache_key = (pipeline_name, pipeline_run_id)
        cached = self._pipelines.get(cache_key)
        if cached is not None:
            return cached

        pipeline = self.ensure_context(pipeline_name, self.pipeline_context_type.name)
        pipeline_run = self.ensure_context(pipeline_run_id, self.pipeline_run_context_type.name)
        contexts = PipelineContexts(pipeline=pipeline, pipeline_run=pipeline_run)
        self._pipelines[cache_key] = contexts
        return contexts

    def ensure_context(self, name: str, type_name: str) -> Context:
        existing = self._lookup_context(name, type_name)
        if existing is not None:
            return existing

        try:
            type_id = self._service.get_context_type(type_name).id
        except MetadataNotFoundError:
            type_id = None
        if type_id is None:
            type_id = self._service.put_context_type(ContextType(name=type_name))
            _logger.info("Registered context type %s (id=%s)", type_name, type_id)

        self._service.put_contexts([Context(name=name, type_id=type_id)])

        created = self._lookup_context(name, type_name)
        if created is None:
            raise MetadataInvariantError(
                f"Context {name!r} of type {type_name!r} was created but cannot be read back"
            )
        _logger.info("Created context %s/%s (id=%s)", type_name, name, created.id)
        return created

    def ensure_artifact_type(self, schema: str) -> ArtifactType:
        artifact_type = schema_to_artifact_type(schema)
        type_id = self._service.put_artifact_type(artifact_type)
        return artifact_type.model_copy(update={"id": type_id})

    def record_artifact(self, schema: str, artifact: Artifact) -> Artifact:
        """Register an artifact under the type named by its schema; return the stored copy."""
        artifact_type = self.ensure_artifact_type(schema)
        artifact = artifact.model_copy(update={"type_id": artifact_type.id})

        ids = self._service.put_artifacts([artifact])
        if len(ids) != 1:
            raise MetadataInvariantError(f"Expected one artifact id, got {len(ids)}")

        stored = self.get_artifacts(ids)
        if len(stored) != 1:
            raise MetadataInvariantError(
                f"Expected one artifact for id {ids[0]}, got {len(stored)}"
            )
        recorded = stored[0]
        _logger.info(
            "Recorded artifact %s (id=%s, type=%s)", recorded.uri, recorded.id, artifact_type.name
        )
        return recorded

    def get_artifacts(self, ids: Sequence[int]) -> list[Artifact]:
        return self._service.get_artifacts_by_id(list(ids))

    def record_execution(
        self,
        pipeline: PipelineContexts,
        *,
        task_name: str,
        pipeline_name: str,
        pipeline_run_id: str,
        pipeline_task_id: str,
        container_image: str | None = None,
        input_parameters: Mapping[str, int | float | str] | None = None,
        output_parameters: Mapping[str, int | float | str] | None = None,
        input_artifacts: Sequence[Artifact] = (),
        output_artifacts: Sequence[Artifact] = (),
    ) -> Execution:
        """Record one completed container execution linked to the pipeline contexts."""
        type_id = self._ensure_execution_type()

        custom_properties: dict[str, Value] = {
            "task_name": Value.of(task_name),
            "pipeline_name": Value.of(pipeline_name),
            "pipeline_run_id": Value.of(pipeline_run_id),
            "kfp_pod_name": Value.of(pipeline_task_id),
            "container_image": Value.of(container_image or ""),
        }
        for name, value in (input_parameters or {}).items():
            custom_properties[f"input:{name}"] = Value.of(value)
        for name, value in (output_parameters or {}).items():
            custom_properties[f"output:{name}"] = Value.of(value)

        execution = Execution(
            type_id=type_id,
            last_known_state="COMPLETE",
            custom_properties=custom_properties,
        )
        pairs = [
            ArtifactAndEvent(event=Event(type="INPUT", artifact_id=artifact.id))
            for artifact in input_artifacts
            if artifact.id is not None
        ]
        pairs.extend(
            ArtifactAndEvent(event=Event(type="OUTPUT", artifact_id=artifact.id))
            for artifact in output_artifacts
            if artifact.id is not None
        )

        execution_id = self._service.put_execution(
            execution,
            artifact_event_pairs=pairs,
            contexts=pipeline.contexts,
        )
        executions = self._service.get_executions_by_id([execution_id])
        if len(executions) != 1:
            raise MetadataInvariantError(
                f"Expected one execution for id {execution_id}, got {len(executions)}"
            )
        _logger.info("Recorded execution %s (%d events)", execution_id, len(pairs))
        return executions[0]

    def _ensure_execution_type(self) -> int:
        type_name = self.container_execution_type.name
        try:
            type_id = self._service.get_execution_type(type_name).id
        except MetadataNotFoundError:
            type_id = None
        if type_id is None:
            type_id = self._service.put_execution_type(self.container_execution_type)
        return type_id

    def _lookup_context(self, name: str, type_name: str) -> Context | None:
        # A missing context comes back as NOT_FOUND or as an empty response.
        try:
            context = self._service.get_context_by_type_and_name(type_name, name)
        except MetadataNotFoundError:
            return None
        if context is None or context.id is None:
            return None
        return context


def schema_to_artifact_type(schema: str) -> ArtifactType:
    """Build an artifact type named by the `title` of a YAML schema document."""
    try:
        parsed = yaml.safe_load(schema)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse artifact schema: {exc}") from exc

    title = parsed.get("title") if isinstance(parsed, dict) else None
    if not isinstance(title, str) or not title:
        raise SchemaTitleError(f"Artifact schema has no title: {schema!r}")
    return ArtifactType(name=title)
