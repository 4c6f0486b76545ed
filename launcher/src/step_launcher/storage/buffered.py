from __future__ import annotations

import io
import tempfile
from collections.abc import Callable
from typing import BinaryIO

_SPOOL_MAX_BYTES = 64 * 1024 * 1024


class BufferedUpload(io.BufferedIOBase):
    """
    Spools written bytes locally and hands them to `upload` on close.

    Used by the remote stores so an aborted write never reaches the bucket.
    """

    def __init__(self, upload: Callable[[BinaryIO], None]) -> None:
        super().__init__()
        self._buffer = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES)
        self._upload = upload

    def writable(self) -> bool:
        return True

    def write(self, data: bytes) -> int:  # type: ignore[override]
        return self._buffer.write(data)

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._buffer.seek(0)
            self._upload(self._buffer)
        finally:
            self._buffer.close()
            super().close()

    def abort(self) -> None:
        if self.closed:
            return
        self._buffer.close()
        super().close()
