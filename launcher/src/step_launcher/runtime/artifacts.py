from __future__ import annotations

import shutil
from contextlib import closing
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from step_launcher.contracts.errors import ConfigError
from step_launcher.contracts.metadata import Artifact
from step_launcher.contracts.object_store import ObjectStore

_LOCAL_DATA_FILENAME = "data"
_COPY_CHUNK_SIZE = 1024 * 1024


def build_local_artifact_path(root: str | Path, artifact_name: str) -> Path:
    """Return `<root>/<artifact_name>/data`, the local staging file for an artifact."""
    _validate_artifact_name(artifact_name)
    return Path(root) / artifact_name / _LOCAL_DATA_FILENAME


def ensure_parent_dir(path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    return target


def read_artifact_record(path: str | Path) -> Artifact:
    """Read a serialized artifact record; OSError and ConfigError propagate."""
    payload = Path(path).read_bytes()
    try:
        return Artifact.model_validate_json(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid artifact record in {path}: {exc}") from exc


def write_artifact_record(path: str | Path, artifact: Artifact) -> Path:
    target = ensure_parent_dir(path)
    with target.open("w", encoding="utf-8") as handle:
        handle.write(artifact.to_json())
    return target


def download_object(store: ObjectStore, key: str, destination: str | Path) -> int:
    """Copy the object at key into a local file; return its size in bytes."""
    target = ensure_parent_dir(destination)
    with closing(store.new_reader(key)) as reader, target.open("wb") as handle:
        shutil.copyfileobj(reader, handle, _COPY_CHUNK_SIZE)
    return target.stat().st_size


def upload_object(store: ObjectStore, key: str, source: str | Path) -> int:
    """
    Copy a local file to the object at key; return its size in bytes.

    The object is committed only after the whole file was written. A failed
    copy aborts the writer so no truncated object is left under the key.
    """
    path = Path(source)
    writer = store.new_writer(key)
    try:
        with path.open("rb") as handle:
            shutil.copyfileobj(handle, writer, _COPY_CHUNK_SIZE)
    except Exception:
        writer.abort()
        raise
    writer.close()
    return path.stat().st_size


def _validate_artifact_name(name: str) -> None:
    parts = PurePosixPath(name).parts
    if not name or len(parts) != 1 or parts[0] in {".", ".."} or "\\" in name:
        raise ConfigError(f"Artifact name {name!r} cannot be used as a path segment")
