from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from step_launcher.contracts import ConfigError, LauncherOptions

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_RUNTIME_INFO_KEY = "runtime_info"

__all__ = [
    "ConfigError",
    "LaunchConfig",
    "load_launch_config",
    "load_yaml",
    "resolve_env_vars",
]


@dataclass(frozen=True, slots=True)
class LaunchConfig:
    options: LauncherOptions
    runtime_info_json: str


def load_yaml(path: str | Path) -> dict[str, Any]:
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return payload


def load_launch_config(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> LaunchConfig:
    """
    Build launcher configuration from an optional YAML file plus overrides.

    Overrides (typically command-line flags) win over file values; None-valued
    overrides are ignored. The runtime descriptor may be given inline under
    `runtime_info` either as a JSON string or as a mapping.
    """
    payload: dict[str, Any] = resolve_env_vars(load_yaml(path)) if path is not None else {}
    for key, value in (overrides or {}).items():
        if value is not None:
            payload[key] = value

    runtime_info = payload.pop(_RUNTIME_INFO_KEY, None)
    try:
        options = LauncherOptions.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error("options", exc)) from exc

    return LaunchConfig(options=options, runtime_info_json=_runtime_info_as_json(runtime_info))


def resolve_env_vars(payload: Any, *, path: str = "$") -> Any:
    """Expand `${NAME}` in every string of a parsed YAML document from the environment."""
    if isinstance(payload, Mapping):
        return {
            str(key): resolve_env_vars(value, path=f"{path}.{key}")
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [
            resolve_env_vars(item, path=f"{path}[{index}]") for index, item in enumerate(payload)
        ]
    if not isinstance(payload, str):
        return payload

    unset = [name for name in _ENV_VAR_PATTERN.findall(payload) if name not in os.environ]
    if unset:
        names = ", ".join(sorted(set(unset)))
        raise ConfigError(f"Environment variable(s) {names} not set for {path}")
    return _ENV_VAR_PATTERN.sub(lambda match: os.environ[match.group(1)], payload)


def _runtime_info_as_json(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return json.dumps(dict(value))
    raise ConfigError(f"{_RUNTIME_INFO_KEY} must be a JSON string or a mapping")


def _format_validation_error(prefix: str, exc: ValidationError) -> str:
    details: list[str] = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in error["loc"])
        details.append(f"{prefix}.{loc}: {error['msg']}" if loc else f"{prefix}: {error['msg']}")
    return "; ".join(details)
