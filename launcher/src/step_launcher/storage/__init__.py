from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs, urlsplit

from step_launcher.contracts.errors import ConfigError
from step_launcher.contracts.object_store import ObjectStore
from step_launcher.storage.fakes import InMemoryObjectStore, StorageCall
from step_launcher.storage.gcs import GcsObjectStore
from step_launcher.storage.local import LocalObjectStore
from step_launcher.storage.s3 import S3ObjectStore

__all__ = [
    "GcsObjectStore",
    "InMemoryObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "StorageCall",
    "open_object_store",
]


def open_object_store(base_url: str) -> ObjectStore:
    """
    Open an object store for a root URL such as `gs://bucket?prefix=runs/`.

    The optional `prefix` query parameter scopes every key of the returned store.
    """
    parts = urlsplit(base_url)
    prefix = parse_qs(parts.query).get("prefix", [""])[0]

    if parts.scheme == "gs":
        return GcsObjectStore(parts.netloc, prefix=prefix)
    if parts.scheme == "s3":
        return S3ObjectStore(parts.netloc, prefix=prefix)
    if parts.scheme == "file":
        return LocalObjectStore(Path(parts.path) / prefix)
    raise ConfigError(f"No object store available for {base_url!r}")
