"""
ML Metadata gRPC adapter.

Records cross the boundary through the protobuf JSON mapping, which is the
encoding the pydantic records in `contracts.metadata` follow.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from step_launcher.contracts.errors import MetadataNotFoundError
from step_launcher.contracts.metadata import (
    Artifact,
    ArtifactType,
    Context,
    ContextType,
    Execution,
    ExecutionType,
)
from step_launcher.contracts.metadata_store import ArtifactAndEvent

try:
    import grpc
    from google.protobuf import json_format
    from ml_metadata.proto import metadata_store_pb2
    from ml_metadata.proto import metadata_store_service_pb2 as service_pb2
    from ml_metadata.proto import metadata_store_service_pb2_grpc as service_grpc
except Exception:  # pragma: no cover - handled via runtime error
    grpc = None

_RecordT = TypeVar("_RecordT", bound=BaseModel)

_logger = logging.getLogger("step_launcher.metadata.grpc")


def _require_mlmd() -> None:
    if grpc is None:
        raise RuntimeError(
            "grpcio and ml-metadata are not installed. Install step-launcher[mlmd]."
        )


def _to_proto(record: Any, message: Any) -> Any:
    return json_format.ParseDict(record.to_json_dict(), message, ignore_unknown_fields=True)


def _from_proto(model: type[_RecordT], message: Any) -> _RecordT:
    return model.model_validate(json_format.MessageToDict(message))


class GrpcMetadataStore:
    """MetadataStoreService backed by an ML Metadata gRPC server."""

    def __init__(self, target: str, *, stub: Any | None = None) -> None:
        _require_mlmd()
        self._channel = None
        if stub is None:
            self._channel = grpc.insecure_channel(target)
            stub = service_grpc.MetadataStoreServiceStub(self._channel)
        self._stub = stub
        _logger.debug("Connected to metadata store at %s", target)

    def get_context_by_type_and_name(self, type_name: str, context_name: str) -> Context | None:
        request = service_pb2.GetContextByTypeAndNameRequest(
            type_name=type_name, context_name=context_name
        )
        response = self._call("GetContextByTypeAndName", request)
        if not response.HasField("context"):
            return None
        return _from_proto(Context, response.context)

    def get_context_type(self, type_name: str) -> ContextType:
        request = service_pb2.GetContextTypeRequest(type_name=type_name)
        response = self._call("GetContextType", request)
        if not response.HasField("context_type"):
            raise MetadataNotFoundError(f"Context type {type_name!r} not found")
        return _from_proto(ContextType, response.context_type)

    def put_context_type(self, context_type: ContextType) -> int:
        request = service_pb2.PutContextTypeRequest(
            context_type=_to_proto(context_type, metadata_store_pb2.ContextType())
        )
        return self._call("PutContextType", request).type_id

    def put_contexts(self, contexts: Sequence[Context]) -> list[int]:
        request = service_pb2.PutContextsRequest(
            contexts=[_to_proto(context, metadata_store_pb2.Context()) for context in contexts]
        )
        return list(self._call("PutContexts", request).context_ids)

    def get_execution_type(self, type_name: str) -> ExecutionType:
        request = service_pb2.GetExecutionTypeRequest(type_name=type_name)
        response = self._call("GetExecutionType", request)
        if not response.HasField("execution_type"):
            raise MetadataNotFoundError(f"Execution type {type_name!r} not found")
        return _from_proto(ExecutionType, response.execution_type)

    def put_execution_type(self, execution_type: ExecutionType) -> int:
        request = service_pb2.PutExecutionTypeRequest(
            execution_type=_to_proto(execution_type, metadata_store_pb2.ExecutionType())
        )
        return self._call("PutExecutionType", request).type_id

    def put_execution(
        self,
        execution: Execution,
        *,
        artifact_event_pairs: Sequence[ArtifactAndEvent] = (),
        contexts: Sequence[Context] = (),
    ) -> int:
        pairs = []
        for pair in artifact_event_pairs:
            proto_pair = service_pb2.PutExecutionRequest.ArtifactAndEvent(
                event=_to_proto(pair.event, metadata_store_pb2.Event())
            )
            if pair.artifact is not None:
                artifact = _to_proto(pair.artifact, metadata_store_pb2.Artifact())
                proto_pair.artifact.CopyFrom(artifact)
            pairs.append(proto_pair)

        request = service_pb2.PutExecutionRequest(
            execution=_to_proto(execution, metadata_store_pb2.Execution()),
            artifact_event_pairs=pairs,
            contexts=[_to_proto(context, metadata_store_pb2.Context()) for context in contexts],
        )
        return self._call("PutExecution", request).execution_id

    def get_executions_by_id(self, execution_ids: Sequence[int]) -> list[Execution]:
        request = service_pb2.GetExecutionsByIDRequest(execution_ids=list(execution_ids))
        response = self._call("GetExecutionsByID", request)
        return [_from_proto(Execution, execution) for execution in response.executions]

    def put_artifact_type(self, artifact_type: ArtifactType) -> int:
        request = service_pb2.PutArtifactTypeRequest(
            artifact_type=_to_proto(artifact_type, metadata_store_pb2.ArtifactType())
        )
        return self._call("PutArtifactType", request).type_id

    def put_artifacts(self, artifacts: Sequence[Artifact]) -> list[int]:
        request = service_pb2.PutArtifactsRequest(
            artifacts=[_to_proto(artifact, metadata_store_pb2.Artifact()) for artifact in artifacts]
        )
        return list(self._call("PutArtifacts", request).artifact_ids)

    def get_artifacts_by_id(self, artifact_ids: Sequence[int]) -> list[Artifact]:
        request = service_pb2.GetArtifactsByIDRequest(artifact_ids=list(artifact_ids))
        response = self._call("GetArtifactsByID", request)
        return [_from_proto(Artifact, artifact) for artifact in response.artifacts]

    def close(self) -> None:
        if self._channel is not None:
            self._channel.close()
            self._channel = None

    def _call(self, method: str, request: Any) -> Any:
        try:
            return getattr(self._stub, method)(request)
        except grpc.RpcError as exc:
            if exc.code() == grpc.StatusCode.NOT_FOUND:
                raise MetadataNotFoundError(f"{method}: {exc.details()}") from exc
            raise
