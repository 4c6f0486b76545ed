from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass

from step_launcher.contracts.errors import StorageRootError

SUPPORTED_SCHEMES = ("gs://", "s3://", "file:///")

_ROOT_PATTERN = re.compile(r"^([a-z][a-z0-9]+:///?)([^/? ]+)(/[^ ?]*)?$")


@dataclass(frozen=True, slots=True)
class StorageRoot:
    """
    A bucket plus optional key prefix under which all artifact bytes live.

    `prefix` is either empty or ends with "/".
    """

    scheme: str
    bucket_name: str
    prefix: str = ""

    @classmethod
    def parse(cls, root: str) -> StorageRoot:
        match = _ROOT_PATTERN.match(root)
        if match is None:
            raise StorageRootError(f"Unrecognized pipeline root format: {root!r}")

        scheme, bucket_name, path = match.groups()
        if scheme not in SUPPORTED_SCHEMES:
            raise StorageRootError(
                f"Unsupported storage scheme {scheme!r} in pipeline root {root!r}; "
                f"expected one of {', '.join(SUPPORTED_SCHEMES)}"
            )

        prefix = (path or "").strip("/")
        if prefix:
            prefix = re.sub(r"/{2,}", "/", prefix) + "/"
        return cls(scheme=scheme, bucket_name=bucket_name, prefix=prefix)

    def to_base_url(self) -> str:
        """Root URL an object store can be opened at; the prefix travels as a query."""
        url = self.scheme + self.bucket_name
        if self.prefix:
            url = f"{url}?prefix={self.prefix}"
        return url

    def key_for(self, uri: str) -> str:
        expected = f"{self.scheme}{self.bucket_name}/{self.prefix}"
        if not uri.startswith(expected):
            raise StorageRootError(f"URI {uri!r} does not have expected bucket prefix {expected!r}")

        key = uri[len(expected) :].lstrip("/")
        if not key:
            raise StorageRootError(f"URI {uri!r} has empty key given prefixed bucket {expected!r}")
        return key

    def uri_for(self, key: str) -> str:
        return self.scheme + posixpath.join(self.bucket_name, self.prefix, key)
