"""
Error classes for the step launcher.

- ConfigError: invalid configuration or input; reported immediately, never retried.
- LauncherError: a launch phase failed (I/O, child process); carries the phase
  and, where relevant, the artifact name and child exit code.
- MetadataNotFoundError: the metadata store reported a missing entity.
- MetadataInvariantError: the metadata store answered with an unexpected
  number of entities for a single-item call.

Nothing in the launcher retries; errors propagate to the process entry point.
"""

from __future__ import annotations


class ConfigError(ValueError):
    pass


class StorageRootError(ConfigError):
    pass


class SchemaTitleError(ConfigError):
    pass


class LauncherError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        phase: str,
        artifact: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.artifact = artifact
        self.exit_code = exit_code


class MetadataNotFoundError(LookupError):
    pass


class MetadataInvariantError(RuntimeError):
    pass
