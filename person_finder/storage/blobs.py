"""Blob storage for uploaded photos."""

from __future__ import annotations

import time
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

from person_finder.core.errors import BlobNotFoundError, PersistenceError
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """Opaque byte storage addressed by string references."""

    def store(self, data: bytes, suffix: str = "") -> str:
        ...

    def load(self, reference: str) -> bytes:
        ...

    def delete(self, reference: str) -> bool:
        ...


class LocalBlobStore:
    """Blob store writing one file per blob under a root directory.

    References are file names relative to the root, ``<epoch ms>-<hex><suffix>``.

    Attributes:
        root: Directory holding the blobs

    Example:
        >>> blobs = LocalBlobStore("data/uploads")
        >>> ref = blobs.store(photo_bytes, ".jpg")
        >>> blobs.load(ref) == photo_bytes
        True
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, reference: str) -> Path:
        if not reference:
            raise PersistenceError("Empty blob reference")
        root = self.root.resolve()
        path = (root / reference).resolve()
        if root not in path.parents:
            raise PersistenceError(f"Blob reference escapes store root: {reference}")
        return path

    def store(self, data: bytes, suffix: str = "") -> str:
        """Write bytes to a new blob and return its reference.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        if suffix and not suffix.startswith("."):
            suffix = f".{suffix}"
        reference = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{suffix.lower()}"
        path = self._path(reference)

        try:
            path.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"Could not store blob {reference}: {e}") from e

        logger.debug(f"Stored blob {reference} ({len(data)} bytes)")
        return reference

    def load(self, reference: str) -> bytes:
        """Read a blob.

        Raises:
            BlobNotFoundError: If no blob exists for the reference.
            PersistenceError: If the reference is invalid or reading fails.
        """
        path = self._path(reference)
        if not path.is_file():
            raise BlobNotFoundError(reference)

        try:
            return path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Could not read blob {reference}: {e}") from e

    def delete(self, reference: str) -> bool:
        """Remove a blob; returns False if it did not exist."""
        path = self._path(reference)
        if not path.is_file():
            return False

        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Could not delete blob {reference}: {e}") from e

        logger.debug(f"Deleted blob {reference}")
        return True

    def __repr__(self) -> str:
        return f"LocalBlobStore(root={self.root})"
