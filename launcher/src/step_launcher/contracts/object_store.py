from __future__ import annotations

from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class ObjectWriter(Protocol):
    """
    Streamed write of one object.

    Nothing is visible under the key until close() commits it; abort() drops
    the written bytes instead. Either call ends the writer.
    """

    def write(self, data: bytes) -> int:
        ...

    def close(self) -> None:
        """Commit the object; raise if the upload failed."""
        ...

    def abort(self) -> None:
        """Discard the written bytes without committing."""
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """
    Blob storage scoped to one bucket (and optional prefix).

    Keys are relative to the scope. Readers and writers must be closed by the
    caller.
    """

    def new_reader(self, key: str) -> BinaryIO:
        """Open the object at key for streamed reading."""
        ...

    def new_writer(self, key: str) -> ObjectWriter:
        """Open the object at key for streamed writing."""
        ...

    def close(self) -> None:
        """Release the handle."""
        ...
