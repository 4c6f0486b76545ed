"""Local filesystem object store, for `file:///` pipeline roots."""

from __future__ import annotations

import io
import os
from pathlib import Path
from typing import BinaryIO


class LocalObjectStore:
    """Stores objects as files under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def new_reader(self, key: str) -> BinaryIO:
        path = self._path_for(key)
        if not path.is_file():
            raise FileNotFoundError(f"Object not found: {key} (looked in {path})")
        return path.open("rb")

    def new_writer(self, key: str) -> _LocalWriter:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        return _LocalWriter(path)

    def close(self) -> None:
        return None

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Key {key!r} escapes store root {self.root}")
        return path


class _LocalWriter(io.FileIO):
    """Writes beside the target and renames into place on close."""

    def __init__(self, target: Path) -> None:
        self._target = target
        self._partial = target.with_name(f".{target.name}.partial")
        super().__init__(self._partial, "wb")

    def close(self) -> None:
        if self.closed:
            return
        super().close()
        os.replace(self._partial, self._target)

    def abort(self) -> None:
        if self.closed:
            return
        super().close()
        self._partial.unlink(missing_ok=True)
