"""
Records exchanged with the lineage (ML Metadata) store.

Field names follow the ML Metadata JSON encoding (camelCase, int64 values as
strings) so records written to sink files can be read back by any consumer of
that encoding.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

EventType = Literal[
    "INPUT",
    "OUTPUT",
    "DECLARED_INPUT",
    "DECLARED_OUTPUT",
    "INTERNAL_INPUT",
    "INTERNAL_OUTPUT",
]
ExecutionState = Literal["UNKNOWN", "NEW", "RUNNING", "COMPLETE", "FAILED", "CACHED", "CANCELED"]


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # Empty maps are omitted, as in the canonical encoding.
        return {key: value for key, value in payload.items() if value != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_json_dict(), sort_keys=True)


class Value(_Record):
    int_value: int | None = None
    double_value: float | None = None
    string_value: str | None = None

    @field_serializer("int_value")
    def _int64_as_string(self, value: int | None) -> str | None:
        return None if value is None else str(value)

    @classmethod
    def of(cls, value: int | float | str) -> Value:
        if isinstance(value, bool):
            return cls(string_value=str(value))
        if isinstance(value, int):
            return cls(int_value=value)
        if isinstance(value, float):
            return cls(double_value=value)
        return cls(string_value=str(value))

    def unwrap(self) -> int | float | str | None:
        if self.int_value is not None:
            return self.int_value
        if self.double_value is not None:
            return self.double_value
        return self.string_value


class _Entity(_Record):
    id: int | None = None
    type_id: int | None = None
    name: str | None = None
    properties: dict[str, Value] = Field(default_factory=dict)
    custom_properties: dict[str, Value] = Field(default_factory=dict)
    create_time_since_epoch: int | None = None
    last_update_time_since_epoch: int | None = None

    @field_serializer("id", "type_id", "create_time_since_epoch", "last_update_time_since_epoch")
    def _int64_as_string(self, value: int | None) -> str | None:
        return None if value is None else str(value)


class Artifact(_Entity):
    type: str | None = None
    uri: str | None = None
    state: str | None = None


class Context(_Entity):
    type: str | None = None


class Execution(_Entity):
    type: str | None = None
    last_known_state: ExecutionState | None = None


class _Type(_Record):
    id: int | None = None
    name: str

    @field_serializer("id")
    def _int64_as_string(self, value: int | None) -> str | None:
        return None if value is None else str(value)


class ArtifactType(_Type):
    pass


class ContextType(_Type):
    pass


class ExecutionType(_Type):
    pass


class Event(_Record):
    artifact_id: int | None = None
    execution_id: int | None = None
    type: EventType

    @field_serializer("artifact_id", "execution_id")
    def _int64_as_string(self, value: int | None) -> str | None:
        return None if value is None else str(value)
