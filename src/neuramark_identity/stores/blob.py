"""Content-addressed blob stores.

A blob store maps bytes to a content identifier derived from those bytes
(:func:`~neuramark_identity.canonical.content_id`). Writing identical
bytes twice yields the same identifier and stores one copy.

Two implementations are provided:

- :class:`InMemoryBlobStore` for tests and embedding
- :class:`FileBlobStore`, one file per blob under a directory, used by the CLI
"""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from neuramark_identity.canonical import content_id
from neuramark_identity.errors import NotFoundError

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """The content-addressed store consumed by this package."""

    def put(self, data: bytes, name: str) -> str:
        """Store *data* and return its content identifier."""
        ...

    def get(self, cid: str) -> bytes:
        """Return the bytes stored under *cid* or raise :class:`NotFoundError`."""
        ...


class InMemoryBlobStore:
    """Thread-safe in-memory blob store.

    ``names`` records the most recent name each blob was written under,
    mirroring the pin metadata of hosted stores.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._names: dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes, name: str) -> str:
        cid = content_id(data)
        with self._lock:
            self._blobs.setdefault(cid, bytes(data))
            self._names[cid] = name
        logger.debug("Stored blob %s (%d bytes) as %r", cid, len(data), name)
        return cid

    def get(self, cid: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[cid]
            except KeyError:
                raise NotFoundError(f"No blob stored under {cid!r}.") from None

    def name_of(self, cid: str) -> str | None:
        with self._lock:
            return self._names.get(cid)

    def __contains__(self, cid: object) -> bool:
        with self._lock:
            return cid in self._blobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class FileBlobStore:
    """Blob store keeping one file per content identifier under *directory*.

    Writes go to a temporary file that is atomically renamed into place,
    so a blob file is either complete or absent.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, cid: str) -> Path:
        if not cid or "/" in cid or "\\" in cid or cid.startswith("."):
            raise NotFoundError(f"Invalid content identifier {cid!r}.")
        return self._directory / cid

    def put(self, data: bytes, name: str) -> str:
        cid = content_id(data)
        target = self._path_for(cid)
        if not target.exists():
            tmp = target.with_name(f".{cid}.{os.getpid()}.{threading.get_ident()}.tmp")
            tmp.write_bytes(data)
            os.replace(tmp, target)
            logger.debug("Wrote blob %s (%d bytes) as %r", cid, len(data), name)
        return cid

    def get(self, cid: str) -> bytes:
        path = self._path_for(cid)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"No blob stored under {cid!r}.") from None


__all__ = ["BlobStore", "FileBlobStore", "InMemoryBlobStore"]
