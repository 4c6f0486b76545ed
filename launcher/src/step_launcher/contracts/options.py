from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

DEFAULT_INPUT_ROOT = "/tmp/kfp_launcher_inputs"
DEFAULT_OUTPUT_ROOT = "/tmp/kfp_launcher_outputs"

_REQUIRED_FIELDS = (
    "pipeline_name",
    "pipeline_run_id",
    "pipeline_task_id",
    "pipeline_root",
    "task_name",
    "mlmd_server_address",
    "mlmd_server_port",
)


class LauncherOptions(BaseModel):
    """
    Launcher configuration, built once at startup and passed into the launcher.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    pipeline_name: str = ""
    pipeline_run_id: str = ""
    pipeline_task_id: str = ""
    pipeline_root: str = ""
    task_name: str = ""
    mlmd_server_address: str = ""
    mlmd_server_port: str = "8080"

    container_image: str | None = None
    input_root: str = DEFAULT_INPUT_ROOT
    output_root: str = DEFAULT_OUTPUT_ROOT

    # Off by default: every output artifact of a task shares one remote key.
    unique_output_keys: bool = False

    @field_validator("mlmd_server_port", mode="before")
    @classmethod
    def _coerce_port(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _validate_required(self) -> LauncherOptions:
        for name in _REQUIRED_FIELDS:
            if not getattr(self, name):
                raise ValueError(f"Must specify {name}")
        return self

    @property
    def mlmd_target(self) -> str:
        return f"{self.mlmd_server_address}:{self.mlmd_server_port}"
