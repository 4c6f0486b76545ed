"""
S3-compatible object store (AWS S3, MinIO, SeaweedFS).

Connection settings come from the standard AWS environment; set
AWS_ENDPOINT_URL to target a non-AWS endpoint.
"""

from __future__ import annotations

import os
from typing import Any, BinaryIO

from step_launcher.storage.buffered import BufferedUpload

try:
    import boto3 as _boto3
except Exception:  # pragma: no cover - handled via runtime error
    _boto3 = None


def _require_boto3() -> Any:
    if _boto3 is None:
        raise RuntimeError("boto3 is not installed. Install step-launcher[s3] for s3:// roots.")
    return _boto3


class S3ObjectStore:
    def __init__(self, bucket_name: str, *, prefix: str = "", client: Any | None = None) -> None:
        self._bucket = bucket_name
        self._prefix = prefix
        if client is None:
            kwargs: dict[str, Any] = {}
            endpoint_url = os.environ.get("AWS_ENDPOINT_URL")
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = _require_boto3().client("s3", **kwargs)
        self._client = client

    def new_reader(self, key: str) -> BinaryIO:
        response = self._client.get_object(Bucket=self._bucket, Key=self._prefix + key)
        return response["Body"]

    def new_writer(self, key: str) -> BufferedUpload:
        object_key = self._prefix + key

        def upload(buffer: BinaryIO) -> None:
            self._client.upload_fileobj(buffer, self._bucket, object_key)

        return BufferedUpload(upload)

    def close(self) -> None:
        return None
