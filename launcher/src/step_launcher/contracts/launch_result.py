from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

LaunchPhase = Literal[
    "init",
    "stage_inputs",
    "stage_outputs",
    "exec",
    "upload_record",
    "done",
    "failed",
]


@dataclass(frozen=True, slots=True)
class LaunchResult:
    """
    Outcome of a successful launch.

    Failed launches raise LauncherError instead of returning a result.
    """

    phase: LaunchPhase
    started_at_utc: str
    ended_at_utc: str
    duration_s: float

    # The command as executed, after placeholder substitution.
    command: tuple[str, ...] = ()

    # Output artifact name -> final URI.
    outputs: Mapping[str, str] = field(default_factory=dict)

    execution_id: int | None = None
