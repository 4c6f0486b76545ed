"""
Placeholder resolution for a step's command line.

Placeholders are held as typed (kind, name) keys and rendered into the
`{{$.inputs...}}` / `{{$.outputs...}}` token grammar only when a command line
is rewritten. The resolver also decides every local path the launcher stages
artifacts at; it performs no object-store I/O.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from step_launcher.contracts.errors import ConfigError
from step_launcher.contracts.options import LauncherOptions
from step_launcher.contracts.runtime_info import RuntimeInfo
from step_launcher.runtime.artifacts import build_local_artifact_path, read_artifact_record
from step_launcher.runtime.storage_root import StorageRoot

PlaceholderKind = Literal[
    "input_artifact_uri",
    "input_artifact_path",
    "input_parameter",
    "output_artifact_path",
    "output_artifact_uri",
    "output_parameter_file",
]

_TOKEN_TEMPLATES: dict[str, str] = {
    "input_artifact_uri": "{{{{$.inputs.artifacts['{name}'].uri}}}}",
    "input_artifact_path": "{{{{$.inputs.artifacts['{name}'].path}}}}",
    "input_parameter": "{{{{$.inputs.parameters['{name}']}}}}",
    "output_artifact_path": "{{{{$.outputs.artifacts['{name}'].path}}}}",
    "output_artifact_uri": "{{{{$.outputs.artifacts['{name}'].uri}}}}",
    "output_parameter_file": "{{{{$.outputs.parameters['{name}'].output_file}}}}",
}

_logger = logging.getLogger("step_launcher.placeholders")


@dataclass(frozen=True, slots=True)
class Placeholder:
    kind: PlaceholderKind
    name: str

    @property
    def token(self) -> str:
        return _TOKEN_TEMPLATES[self.kind].format(name=self.name)


class PlaceholderMap(Mapping[Placeholder, str]):
    """Resolved placeholder values for one execution."""

    def __init__(self) -> None:
        self._values: dict[Placeholder, str] = {}

    def __getitem__(self, key: Placeholder) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[Placeholder]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def register(self, kind: PlaceholderKind, name: str, value: str) -> None:
        self._values[Placeholder(kind=kind, name=name)] = value

    def tokens(self) -> dict[str, str]:
        """Return the wire-form token -> value mapping."""
        return {placeholder.token: value for placeholder, value in self._values.items()}

    def rewrite(self, args: Sequence[str]) -> list[str]:
        """Replace arguments that exactly equal a token; others pass through."""
        tokens = self.tokens()
        return [tokens.get(arg, arg) for arg in args]


class PlaceholderResolver:
    def __init__(
        self,
        *,
        storage_root: StorageRoot,
        pipeline_name: str,
        pipeline_run_id: str,
        pipeline_task_id: str,
        input_root: str,
        output_root: str,
        unique_output_keys: bool = False,
    ) -> None:
        self._storage_root = storage_root
        self._pipeline_name = pipeline_name
        self._pipeline_run_id = pipeline_run_id
        self._pipeline_task_id = pipeline_task_id
        self._input_root = input_root
        self._output_root = output_root
        self._unique_output_keys = unique_output_keys
        self.placeholders = PlaceholderMap()

    @classmethod
    def from_options(
        cls, options: LauncherOptions, storage_root: StorageRoot
    ) -> PlaceholderResolver:
        return cls(
            storage_root=storage_root,
            pipeline_name=options.pipeline_name,
            pipeline_run_id=options.pipeline_run_id,
            pipeline_task_id=options.pipeline_task_id,
            input_root=options.input_root,
            output_root=options.output_root,
            unique_output_keys=options.unique_output_keys,
        )

    def resolve_inputs(self, runtime_info: RuntimeInfo) -> None:
        """Read input artifact records, plan local paths, register input placeholders."""
        for name, declared in runtime_info.input_artifacts.items():
            if not declared.file_input_path:
                raise ConfigError(f"Missing input artifact metadata file for input: {name!r}")

            try:
                artifact = read_artifact_record(declared.file_input_path)
            except OSError as exc:
                raise ConfigError(
                    f"Failed to read input artifact metadata file for {name!r}: {exc}"
                ) from exc
            except ConfigError as exc:
                raise ConfigError(
                    f"Failed to decode input artifact metadata for {name!r}: {exc}"
                ) from exc

            local_path = str(build_local_artifact_path(self._input_root, name))
            declared.artifact = artifact
            declared.local_artifact_file_path = local_path
            self.placeholders.register("input_artifact_uri", name, artifact.uri or "")
            self.placeholders.register("input_artifact_path", name, local_path)
            _logger.debug("Input artifact %s: %s -> %s", name, artifact.uri, local_path)

        for name, parameter in runtime_info.input_parameters.items():
            self.placeholders.register("input_parameter", name, parameter.parameter_value)

    def resolve_outputs(self, runtime_info: RuntimeInfo) -> None:
        """Plan local and remote locations for outputs, register output placeholders."""
        for name, parameter in runtime_info.output_parameters.items():
            self.placeholders.register("output_parameter_file", name, parameter.file_output_path)

        for name, declared in runtime_info.output_artifacts.items():
            local_path = str(build_local_artifact_path(self._output_root, name))
            final_uri = self._storage_root.uri_for(self.output_key(name))
            declared.local_artifact_file_path = local_path
            declared.uri_output_path = final_uri
            self.placeholders.register("output_artifact_path", name, local_path)
            self.placeholders.register("output_artifact_uri", name, final_uri)
            _logger.debug("Output artifact %s: %s -> %s", name, local_path, final_uri)

    def output_key(self, artifact_name: str) -> str:
        """
        Remote key for an output artifact.

        Unless unique_output_keys is set the artifact name is not part of the key,
        so every output artifact of a task lands on the same object.
        """
        parts = [self._pipeline_name, self._pipeline_run_id, self._pipeline_task_id]
        if self._unique_output_keys:
            parts.append(artifact_name)
        return posixpath.join(*parts, "data")

    def rewrite(self, args: Sequence[str]) -> list[str]:
        return self.placeholders.rewrite(args)
