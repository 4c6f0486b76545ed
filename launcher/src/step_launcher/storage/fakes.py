from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, BinaryIO


@dataclass(frozen=True, slots=True)
class StorageCall:
    """Record of an object store call for assertions in tests."""

    name: str
    kwargs: dict[str, Any]


class InMemoryObjectStore:
    """
    In-memory ObjectStore for unit tests.

    Objects become visible when their writer is closed; an aborted writer
    leaves nothing behind. `fail_writes_on_close` makes every writer raise from
    close(), the way a remote upload failure does; `fail_writes` makes every
    write() raise, as an interrupted stream would.
    """

    def __init__(
        self,
        objects: dict[str, bytes] | None = None,
        *,
        fail_writes_on_close: bool = False,
        fail_writes: bool = False,
    ) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.opened_urls: list[str] = []
        self.closed = False
        self._fail_writes_on_close = fail_writes_on_close
        self._fail_writes = fail_writes
        self._calls: list[StorageCall] = []

    @property
    def calls(self) -> list[StorageCall]:
        """Return the recorded calls in order."""
        return list(self._calls)

    def opener(self, base_url: str) -> InMemoryObjectStore:
        """Stand-in for open_object_store() that hands out this store."""
        self.opened_urls.append(base_url)
        self.closed = False
        self._record("open", base_url=base_url)
        return self

    def new_reader(self, key: str) -> BinaryIO:
        self._record("new_reader", key=key)
        if key not in self.objects:
            raise FileNotFoundError(f"Object not found: {key}")
        return io.BytesIO(self.objects[key])

    def new_writer(self, key: str) -> _MemoryWriter:
        self._record("new_writer", key=key)
        return _MemoryWriter(self, key)

    def close(self) -> None:
        self._record("close")
        self.closed = True

    def _commit(self, key: str, data: bytes) -> None:
        if self._fail_writes_on_close:
            raise OSError(f"Simulated upload failure for {key}")
        self.objects[key] = data
        self._record("commit", key=key, size=len(data))

    def _record(self, name: str, /, **kwargs: Any) -> None:
        self._calls.append(StorageCall(name=name, kwargs=kwargs))


class _MemoryWriter(io.BytesIO):
    def __init__(self, store: InMemoryObjectStore, key: str) -> None:
        super().__init__()
        self._store = store
        self._key = key

    def write(self, data: bytes) -> int:  # type: ignore[override]
        if self._store._fail_writes:
            raise OSError(f"Simulated write failure for {self._key}")
        return super().write(data)

    def close(self) -> None:
        if self.closed:
            return
        data = self.getvalue()
        super().close()
        self._store._commit(self._key, data)

    def abort(self) -> None:
        if self.closed:
            return
        super().close()
        self._store._record("abort", key=self._key)
