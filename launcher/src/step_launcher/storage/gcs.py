from __future__ import annotations

from typing import Any, BinaryIO

from step_launcher.storage.buffered import BufferedUpload

try:
    from google.cloud import storage as _gcs
except Exception:  # pragma: no cover - handled via runtime error
    _gcs = None


def _require_gcs() -> Any:
    if _gcs is None:
        raise RuntimeError(
            "google-cloud-storage is not installed. Install step-launcher[gcs] for gs:// roots."
        )
    return _gcs


class GcsObjectStore:
    """
    Google Cloud Storage bucket, optionally scoped to a key prefix.

    Writers upload on close; upload failures are raised from close().
    """

    def __init__(self, bucket_name: str, *, prefix: str = "", client: Any | None = None) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else _require_gcs().Client()
        self._bucket = self._client.bucket(bucket_name)
        self._prefix = prefix

    def new_reader(self, key: str) -> BinaryIO:
        return self._bucket.blob(self._prefix + key).open("rb")

    def new_writer(self, key: str) -> BufferedUpload:
        blob = self._bucket.blob(self._prefix + key)
        return BufferedUpload(blob.upload_from_file)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
