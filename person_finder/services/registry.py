"""Registry service for missing-person records.

Registers people (with an optional photo), lists and filters the open cases,
records feedback and found status, and reports case statistics. Photos are
stored as blobs; the record keeps only the blob reference.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from person_finder.core.errors import RecordNotFoundError
from person_finder.core.logging_config import get_logger
from person_finder.storage.blobs import BlobStore
from person_finder.storage.embedding_cache import EmbeddingCache
from person_finder.storage.records import (
    Feedback,
    PersonRecord,
    RecordQuery,
    RecordStore,
    parse_datetime,
)

logger = get_logger(__name__)

DEFAULT_RECENT_LIMIT = 3


class PersonRegistry:
    """CRUD and reporting over the record store.

    Attributes:
        store: Record store
        blobs: Blob store for registered photos
        cache: Embedding cache to invalidate when a record goes away
        recent_limit: Default size of the recent-persons listing

    Example:
        >>> registry = PersonRegistry(store, blobs)
        >>> record = registry.add_person(image=photo_bytes, name="Asha", age=9)
        >>> registry.statistics()
        {'total_cases': 1, 'found_persons': 0}
    """

    def __init__(
        self,
        store: RecordStore,
        blobs: BlobStore,
        cache: Optional[EmbeddingCache] = None,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ):
        if recent_limit < 1:
            raise ValueError(f"recent_limit must be >= 1, got {recent_limit}")

        self.store = store
        self.blobs = blobs
        self.cache = cache
        self.recent_limit = recent_limit

    def add_person(
        self,
        image: Optional[bytes] = None,
        image_suffix: str = ".jpg",
        **fields: Any,
    ) -> PersonRecord:
        """Register a missing person.

        The photo is not checked for faces here; a faceless photo is simply
        skipped when matching.

        Args:
            image: Encoded photo bytes, if any
            image_suffix: File suffix for the stored photo
            **fields: PersonRecord fields (name is required)

        Returns:
            The created record, with its id set.

        Raises:
            ValueError: If name is missing or an unknown field is given.
            PersistenceError: If the photo or the record cannot be stored.
        """
        if not fields.get("name"):
            raise ValueError("name is required")

        for key in ("last_seen", "fir_date"):
            if key in fields:
                fields[key] = parse_datetime(fields[key])

        try:
            record = PersonRecord(**fields)
        except TypeError as e:
            raise ValueError(f"Invalid person fields: {e}") from e

        if image:
            record.picture = self.blobs.store(image, image_suffix)

        try:
            self.store.create(record)
        except Exception:
            if record.picture:
                self.blobs.delete(record.picture)
            raise

        logger.info(f"Registered {record!r} (photo={'yes' if record.picture else 'no'})")
        return record

    def list_missing(
        self,
        name: Optional[str] = None,
        age: Optional[int] = None,
        state: Optional[str] = None,
        city: Optional[str] = None,
    ) -> List[PersonRecord]:
        """Open cases, optionally filtered.

        Args:
            name: Case-insensitive regular expression searched in the name
            age: Exact age
            state: Exact state
            city: Exact city
        """
        query = RecordQuery(name=name, age=age, state=state, city=city, is_found=False)
        return self.store.find(query)

    def get_person(self, record_id: str) -> PersonRecord:
        """Fetch one record.

        Raises:
            RecordNotFoundError: If no record has this id.
        """
        record = self.store.find_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def add_feedback(self, record_id: str, text: str) -> List[Feedback]:
        """Append a feedback note and return the record's full feedback list."""
        if not text:
            raise ValueError("Feedback text is required")

        record = self.get_person(record_id)
        record.feedback.append(Feedback(text=text))
        self.store.save(record)

        logger.info(f"Added feedback to {record!r} ({len(record.feedback)} total)")
        return record.feedback

    def mark_found(self, record_id: str) -> PersonRecord:
        """Close a case. Found records remain in the matching gallery."""
        record = self.get_person(record_id)
        record.is_found = True
        self.store.save(record)

        logger.info(f"Marked {record!r} as found")
        return record

    def list_found(self) -> List[PersonRecord]:
        return self.store.find(RecordQuery(is_found=True))

    def delete_person(self, record_id: str) -> None:
        """Delete a record together with its photo and cached embeddings.

        Raises:
            RecordNotFoundError: If no record has this id.
        """
        record = self.get_person(record_id)
        if not self.store.delete(record_id):
            raise RecordNotFoundError(record_id)

        if record.picture and not self.blobs.delete(record.picture):
            logger.warning(f"Photo {record.picture} of deleted {record!r} was already gone")

        if self.cache is not None:
            self.cache.invalidate(record_id)

        logger.info(f"Deleted {record!r}")

    def statistics(self) -> Dict[str, int]:
        return {
            "total_cases": self.store.count(),
            "found_persons": self.store.count(RecordQuery(is_found=True)),
        }

    def recent_persons(self, limit: Optional[int] = None) -> List[PersonRecord]:
        """Most recently registered records, newest first."""
        limit = self.recent_limit if limit is None else limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        records = self.store.find()
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def __repr__(self) -> str:
        return f"PersonRegistry(store={self.store!r}, blobs={self.blobs!r})"
