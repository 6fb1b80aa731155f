"""Persistence for records, uploaded photos and cached gallery embeddings."""

from person_finder.storage.blobs import BlobStore, LocalBlobStore
from person_finder.storage.embedding_cache import CacheEntry, EmbeddingCache
from person_finder.storage.records import (
    Feedback,
    InMemoryRecordStore,
    JsonRecordStore,
    PersonRecord,
    RecordQuery,
    RecordStore,
)

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "CacheEntry",
    "EmbeddingCache",
    "Feedback",
    "PersonRecord",
    "RecordQuery",
    "RecordStore",
    "InMemoryRecordStore",
    "JsonRecordStore",
]
