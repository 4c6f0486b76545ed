"""
Step launcher: stage inputs, run the step command, upload and record outputs.

Phases run in order: init -> stage_inputs -> stage_outputs -> exec ->
upload_record -> done. The first failure moves the launcher to `failed` and
raises LauncherError; later phases do not run. Nothing is registered with the
metadata store before the command exits successfully, and no output byte is
uploaded before its artifact record exists.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from step_launcher.contracts.errors import ConfigError, LauncherError
from step_launcher.contracts.launch_result import LaunchPhase, LaunchResult
from step_launcher.contracts.metadata import Artifact
from step_launcher.contracts.object_store import ObjectStore
from step_launcher.contracts.options import LauncherOptions
from step_launcher.contracts.runtime_info import OutputArtifact, ParameterType, RuntimeInfo
from step_launcher.metadata.client import MetadataClient
from step_launcher.runtime.artifacts import (
    download_object,
    ensure_parent_dir,
    upload_object,
    write_artifact_record,
)
from step_launcher.runtime.placeholders import PlaceholderResolver
from step_launcher.runtime.storage_root import StorageRoot
from step_launcher.storage import open_object_store

StoreOpener = Callable[[str], ObjectStore]

_logger = logging.getLogger("step_launcher.launcher")


class Launcher:
    def __init__(
        self,
        options: LauncherOptions,
        runtime_info: RuntimeInfo,
        *,
        metadata: MetadataClient,
        open_store: StoreOpener = open_object_store,
    ) -> None:
        self._options = options
        self._runtime_info = runtime_info
        self._metadata = metadata
        self._open_store = open_store
        self._storage_root = StorageRoot.parse(options.pipeline_root)
        self._resolver = PlaceholderResolver.from_options(options, self._storage_root)
        self._phase: LaunchPhase = "init"

    @property
    def phase(self) -> LaunchPhase:
        return self._phase

    def __enter__(self) -> Launcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._metadata.close()

    def run(self, command: str, args: Sequence[str] = ()) -> LaunchResult:
        """Run every phase for one invocation of `command`; raise LauncherError on failure."""
        if self._phase != "init":
            raise RuntimeError(f"Launcher already ran (phase={self._phase})")

        start = datetime.now(UTC)
        try:
            self._enter("stage_inputs")
            self._stage_inputs()
            self._enter("stage_outputs")
            self._stage_outputs()
            self._enter("exec")
            argv = self._execute(command, args)
            self._enter("upload_record")
            outputs, execution_id = self._upload_and_record()
        except LauncherError:
            self._phase = "failed"
            raise
        except Exception as exc:
            failed_phase = self._phase
            self._phase = "failed"
            raise LauncherError(
                f"Launcher failed during {failed_phase}: {exc}", phase=failed_phase
            ) from exc

        self._enter("done")
        end = datetime.now(UTC)
        return LaunchResult(
            phase="done",
            started_at_utc=start.isoformat(),
            ended_at_utc=end.isoformat(),
            duration_s=(end - start).total_seconds(),
            command=tuple(argv),
            outputs=outputs,
            execution_id=execution_id,
        )

    def _enter(self, phase: LaunchPhase) -> None:
        _logger.info("Phase %s -> %s", self._phase, phase)
        self._phase = phase

    def _stage_inputs(self) -> None:
        self._resolver.resolve_inputs(self._runtime_info)
        input_artifacts = self._runtime_info.input_artifacts
        if not input_artifacts:
            return

        store = self._open_store(self._storage_root.to_base_url())
        try:
            for name, declared in input_artifacts.items():
                try:
                    uri = declared.artifact.uri if declared.artifact is not None else None
                    key = self._storage_root.key_for(uri or "")
                    destination = declared.local_artifact_file_path
                    copied = download_object(store, key, destination)
                except Exception as exc:
                    raise LauncherError(
                        f"Failed to stage input artifact {name!r}: {exc}",
                        phase="stage_inputs",
                        artifact=name,
                    ) from exc
                _logger.info("Staged input %s: %s (%d bytes) -> %s", name, key, copied, destination)
        finally:
            store.close()

    def _stage_outputs(self) -> None:
        self._resolver.resolve_outputs(self._runtime_info)
        for declared in self._runtime_info.output_artifacts.values():
            ensure_parent_dir(declared.local_artifact_file_path)
        for parameter in self._runtime_info.output_parameters.values():
            ensure_parent_dir(parameter.file_output_path)

    def _execute(self, command: str, args: Sequence[str]) -> list[str]:
        argv = [command, *self._resolver.rewrite(args)]
        _logger.info("Running %s", shlex.join(argv))
        try:
            # stdin/stdout/stderr are inherited; no timeout.
            completed = subprocess.run(argv, check=False)
        except OSError as exc:
            raise LauncherError(f"Failed to start {command!r}: {exc}", phase="exec") from exc

        if completed.returncode != 0:
            raise LauncherError(
                f"Command {command!r} exited with status {completed.returncode}",
                phase="exec",
                exit_code=completed.returncode,
            )
        return argv

    def _upload_and_record(self) -> tuple[dict[str, str], int | None]:
        options = self._options
        # Parameters are read before anything is registered or uploaded.
        input_parameters = self._input_parameter_values()
        output_parameters = self._output_parameter_values()
        pipeline = self._metadata.get_pipeline(options.pipeline_name, options.pipeline_run_id)

        outputs: dict[str, str] = {}
        recorded: list[Artifact] = []
        output_artifacts = self._runtime_info.output_artifacts
        if output_artifacts:
            store = self._open_store(self._storage_root.to_base_url())
            try:
                for name, declared in output_artifacts.items():
                    try:
                        artifact = self._upload_output(store, declared)
                    except Exception as exc:
                        raise LauncherError(
                            f"Failed to upload output artifact {name!r}: {exc}",
                            phase="upload_record",
                            artifact=name,
                        ) from exc
                    recorded.append(artifact)
                    outputs[name] = declared.uri_output_path
            finally:
                store.close()

        input_artifacts = [
            declared.artifact
            for declared in self._runtime_info.input_artifacts.values()
            if declared.artifact is not None
        ]
        execution = self._metadata.record_execution(
            pipeline,
            task_name=options.task_name,
            pipeline_name=options.pipeline_name,
            pipeline_run_id=options.pipeline_run_id,
            pipeline_task_id=options.pipeline_task_id,
            container_image=options.container_image,
            input_parameters=input_parameters,
            output_parameters=output_parameters,
            input_artifacts=input_artifacts,
            output_artifacts=recorded,
        )
        return outputs, execution.id

    def _upload_output(self, store: ObjectStore, declared: OutputArtifact) -> Artifact:
        artifact = self._metadata.record_artifact(
            declared.artifact_schema, Artifact(uri=declared.uri_output_path)
        )
        write_artifact_record(declared.file_output_path, artifact)

        key = self._storage_root.key_for(declared.uri_output_path)
        source = Path(declared.local_artifact_file_path)
        copied = upload_object(store, key, source)
        _logger.info("Uploaded %s (%d bytes) -> %s", source, copied, declared.uri_output_path)
        return artifact

    def _input_parameter_values(self) -> dict[str, int | float | str]:
        return {
            name: _typed_value(name, parameter.parameter_type, parameter.parameter_value)
            for name, parameter in self._runtime_info.input_parameters.items()
        }

    def _output_parameter_values(self) -> dict[str, int | float | str]:
        values: dict[str, int | float | str] = {}
        for name, parameter in self._runtime_info.output_parameters.items():
            path = Path(parameter.file_output_path)
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise LauncherError(
                    f"Failed to read output parameter {name!r} from {path}: {exc}",
                    phase="upload_record",
                ) from exc
            values[name] = _typed_value(name, parameter.parameter_type, raw.strip())
        return values


def _typed_value(name: str, parameter_type: ParameterType, raw: str) -> int | float | str:
    try:
        if parameter_type == "INT":
            return int(raw)
        if parameter_type == "DOUBLE":
            return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Parameter {name!r} is not a valid {parameter_type}: {raw!r}") from exc
    return raw
