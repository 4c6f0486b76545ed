from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from step_launcher.configuration import LaunchConfig, load_launch_config
from step_launcher.contracts import (
    ConfigError,
    LaunchResult,
    MetadataStoreService,
    decode_runtime_info,
)
from step_launcher.metadata import GrpcMetadataStore, MetadataClient
from step_launcher.orchestration.launcher import Launcher, StoreOpener
from step_launcher.storage import open_object_store

_logger = logging.getLogger("step_launcher.api")


def build_launcher(
    config: LaunchConfig,
    *,
    metadata_store: MetadataStoreService | None = None,
    open_store: StoreOpener = open_object_store,
) -> Launcher:
    """
    Wire a Launcher from validated configuration.

    Without an explicit `metadata_store` the launcher connects to the ML Metadata
    server named by the options.
    """
    runtime_info = decode_runtime_info(config.runtime_info_json)
    if metadata_store is None:
        metadata_store = GrpcMetadataStore(config.options.mlmd_target)
    try:
        return Launcher(
            config.options,
            runtime_info,
            metadata=MetadataClient(metadata_store),
            open_store=open_store,
        )
    except Exception:
        metadata_store.close()
        raise


def launch(
    config: LaunchConfig,
    command: Sequence[str],
    *,
    metadata_store: MetadataStoreService | None = None,
    open_store: StoreOpener = open_object_store,
) -> LaunchResult:
    """Run one step command under the launcher; raise LauncherError on failure."""
    if not command:
        raise ConfigError("A command to launch is required")

    with build_launcher(config, metadata_store=metadata_store, open_store=open_store) as launcher:
        result = launcher.run(command[0], command[1:])
    _logger.info(
        "Launch finished in %.3fs (execution_id=%s)", result.duration_s, result.execution_id
    )
    return result


def launch_from_yaml(
    config_yaml: str | Path,
    command: Sequence[str],
    *,
    overrides: dict[str, Any] | None = None,
    metadata_store: MetadataStoreService | None = None,
    open_store: StoreOpener = open_object_store,
) -> LaunchResult:
    config = load_launch_config(config_yaml, overrides=overrides)
    return launch(config, command, metadata_store=metadata_store, open_store=open_store)
