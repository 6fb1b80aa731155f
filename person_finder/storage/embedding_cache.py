"""Optional cache of gallery embeddings, keyed by record id.

Without the cache every match request re-runs the full pipeline on every
gallery image. With it, a record's embeddings are recomputed only when its
image reference or the producing model changes. The cache never changes
search order; it only replaces the pipeline run for an entry.
"""

from __future__ import annotations

import os
import pickle
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from person_finder.core.errors import PersistenceError
from person_finder.core.interfaces import Embedding
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Cached pipeline output for one record's image.

    An empty ``vectors`` list records that the image has no detectable face.
    """

    image_ref: str
    model_id: str
    vectors: List[np.ndarray]

    def embeddings(self) -> List[Embedding]:
        return [Embedding(vector=v, model_id=self.model_id) for v in self.vectors]


class EmbeddingCache:
    """Record-id keyed embedding cache with optional pickle persistence.

    Writes through put/invalidate/clear mark the cache dirty; ``save`` only
    clears that mark for the changes it actually wrote.

    Attributes:
        path: Pickle file used by save()/load(), if any

    Example:
        >>> cache = EmbeddingCache("data/embeddings.pkl")
        >>> cache.put(record.id, record.picture, embeddings, model_id)
        >>> cache.get(record.id, record.picture, model_id)
    """

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path is not None else None
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._version = 0
        self._saved_version = 0
        self.hits = 0
        self.misses = 0

    @property
    def dirty(self) -> bool:
        """Whether entries changed since the last save or load."""
        return self._version != self._saved_version

    def get(self, record_id: str, image_ref: str, model_id: str) -> Optional[List[Embedding]]:
        """Cached embeddings, or None when absent or stale.

        An entry is stale when the record now points to a different image or
        the embeddings were produced by a different model.
        """
        with self._lock:
            entry = self._entries.get(record_id)
            if entry is None or entry.image_ref != image_ref or entry.model_id != model_id:
                self.misses += 1
                return None
            self.hits += 1
            return entry.embeddings()

    def put(self, record_id: str, image_ref: str, embeddings: List[Embedding], model_id: str) -> None:
        """Store a record's embeddings (possibly none)."""
        for embedding in embeddings:
            if embedding.model_id != model_id:
                raise ValueError(
                    f"Embedding from '{embedding.model_id}' cached under model '{model_id}'"
                )
        entry = CacheEntry(
            image_ref=image_ref,
            model_id=model_id,
            vectors=[np.array(e.vector) for e in embeddings],
        )
        with self._lock:
            self._entries[record_id] = entry
            self._version += 1

    def invalidate(self, record_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(record_id, None) is not None
            if removed:
                self._version += 1
            return removed

    def clear(self) -> None:
        with self._lock:
            if self._entries:
                self._entries.clear()
                self._version += 1

    def save(self) -> None:
        """Write the cache to ``path`` (pickle format).

        The file is written to a temporary sibling that atomically replaces
        ``path``, so a failed write leaves the previous cache intact.

        Raises:
            PersistenceError: If no path is set or writing fails.
        """
        if self.path is None:
            raise PersistenceError("EmbeddingCache has no path to save to")

        with self._save_lock:
            with self._lock:
                entries = dict(self._entries)
                version = self._version

            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
                try:
                    with os.fdopen(fd, "wb") as f:
                        pickle.dump(entries, f)
                    os.replace(tmp_path, self.path)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
            except (OSError, pickle.PicklingError) as e:
                raise PersistenceError(f"Could not save embedding cache: {e}") from e

            with self._lock:
                self._saved_version = max(self._saved_version, version)

        logger.info(f"Saved {len(entries)} cached gallery entries to {self.path}")

    def load(self) -> int:
        """Read the cache from ``path`` if the file exists.

        Returns:
            Number of entries loaded.
        """
        if self.path is None or not self.path.exists():
            return 0

        try:
            with open(self.path, "rb") as f:
                entries = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            raise PersistenceError(f"Could not load embedding cache: {e}") from e

        with self._lock:
            self._entries = dict(entries)
            self._saved_version = self._version

        logger.info(f"Loaded {len(entries)} cached gallery entries from {self.path}")
        return len(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._entries

    def __repr__(self) -> str:
        return f"EmbeddingCache(entries={len(self)}, hits={self.hits}, misses={self.misses})"
