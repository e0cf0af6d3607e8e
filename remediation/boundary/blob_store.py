"""
Blob store contract.

Keys are slash-delimited strings. The pipeline never lists or scans the
store; every key it touches is derived by the key deriver.

Dependencies: threading (stdlib)
System role: Abstract key-value storage used by every pipeline stage
"""

import threading
from typing import Protocol, runtime_checkable

from remediation.core.exceptions import BlobNotFoundError, BlobStoreError


@runtime_checkable
class BlobStore(Protocol):
    """Minimal get/put blob storage."""

    def get(self, key: str) -> bytes:
        """Return the object bytes or raise BlobNotFoundError."""
        ...

    def put(self, key: str, data: bytes) -> None:
        """Write (or overwrite) the object at key."""
        ...

    def exists(self, key: str) -> bool:
        """Return True when the key holds an object."""
        ...


class InMemoryBlobStore:
    """Thread-safe dict-backed blob store for tests and local runs."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._objects: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes:
        with self._lock:
            try:
                return self._objects[key]
            except KeyError:
                raise BlobNotFoundError(key) from None

    def put(self, key: str, data: bytes) -> None:
        if not key or key.startswith("/"):
            raise BlobStoreError(f"Invalid key: {key!r}", key)
        with self._lock:
            self._objects[key] = bytes(data)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._objects

    def keys(self) -> list[str]:
        """Snapshot of stored keys (diagnostics and tests only)."""
        with self._lock:
            return sorted(self._objects)

    def delete(self, key: str) -> None:
        """Remove a key if present (local cleanup; the pipeline never deletes)."""
        with self._lock:
            self._objects.pop(key, None)
