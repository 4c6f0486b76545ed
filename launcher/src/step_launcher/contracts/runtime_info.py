from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from step_launcher.contracts.errors import ConfigError
from step_launcher.contracts.metadata import Artifact

ParameterType = Literal["INT", "STRING", "DOUBLE"]


class _Declared(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class InputParameter(_Declared):
    parameter_type: ParameterType = "STRING"
    parameter_value: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_value(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"parameterType": "STRING", "parameterValue": value}
        return value


class InputArtifact(_Declared):
    # Side-channel file holding the serialized artifact record.
    file_input_path: str = ""

    # Filled in by the resolver.
    artifact: Artifact | None = Field(default=None, exclude=True)
    local_artifact_file_path: str | None = Field(default=None, exclude=True)


class OutputParameter(_Declared):
    parameter_type: ParameterType = "STRING"
    file_output_path: str


class OutputArtifact(_Declared):
    artifact_schema: str
    # Where the recorded artifact is written after execution.
    file_output_path: str

    # Filled in by the resolver:
    # <output_root>/<name>/data
    local_artifact_file_path: str | None = Field(default=None, exclude=True)
    # <pipeline_root>/<pipeline_name>/<run_id>/<task_id>/data
    uri_output_path: str | None = Field(default=None, exclude=True)


class RuntimeInfo(_Declared):
    """
    Typed declaration of a step's inputs and outputs.

    All four maps are always present; missing sections decode as empty.
    """

    input_parameters: dict[str, InputParameter] = Field(default_factory=dict)
    input_artifacts: dict[str, InputArtifact] = Field(default_factory=dict)
    output_parameters: dict[str, OutputParameter] = Field(default_factory=dict)
    output_artifacts: dict[str, OutputArtifact] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce_null_sections(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: item for key, item in value.items() if item is not None}
        return value


def decode_runtime_info(payload: str | bytes) -> RuntimeInfo:
    if not payload or not payload.strip():
        return RuntimeInfo()
    try:
        return RuntimeInfo.model_validate_json(payload)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    details: list[str] = []
    for error in exc.errors(include_url=False):
        loc = ".".join(["runtime_info", *(str(part) for part in error["loc"])])
        details.append(f"{loc}: {error['msg']}")
    return "; ".join(details)
