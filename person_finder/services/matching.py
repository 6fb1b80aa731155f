"""Match service: answers "is the person in this photo registered?".

For each request the service:
1. Gets the loaded model bundle (fails fast while models are loading)
2. Describes every face in the submitted photo
3. Walks the registered records in store order, describing each stored
   photo on demand (or reading the embedding cache)
4. Returns the first record whose face is under the match threshold

Gallery records whose photo is missing, undecodable or faceless are
skipped with a warning; they never abort the search.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator, List, Optional

from person_finder.core.config import Config
from person_finder.core.errors import (
    BlobNotFoundError,
    ImageDecodeError,
    NoFaceDetectedError,
    PersistenceError,
)
from person_finder.core.interfaces import Embedding, Stage
from person_finder.core.logging_config import get_logger
from person_finder.matcher import FirstMatchMatcher, GalleryEntry, MatchVerdict
from person_finder.pipeline import FacePipeline
from person_finder.services.model_loader import ModelLoader
from person_finder.storage.blobs import BlobStore
from person_finder.storage.embedding_cache import EmbeddingCache
from person_finder.storage.records import PersonRecord, RecordQuery, RecordStore

logger = get_logger(__name__)

PipelineFactory = Callable[[Any, Optional[Config]], FacePipeline]


def _default_pipeline_factory(bundle: Any, config: Optional[Config]) -> FacePipeline:
    from person_finder.backends.factory import create_pipeline

    return create_pipeline(bundle, config)


class MatchService:
    """Face match against every registered record.

    Attributes:
        loader: Readiness gate holding the model bundle
        store: Record store providing the gallery
        blobs: Blob store holding the registered photos
        matcher: First-match-wins matcher
        cache: Optional gallery embedding cache
        config: Configuration passed to the pipeline factory

    Example:
        >>> service = MatchService(loader, store, blobs)
        >>> verdict = service.check_face(photo_bytes)
        >>> print(verdict.to_dict())
    """

    def __init__(
        self,
        loader: ModelLoader,
        store: RecordStore,
        blobs: BlobStore,
        matcher: Optional[FirstMatchMatcher] = None,
        pipeline_factory: PipelineFactory = _default_pipeline_factory,
        cache: Optional[EmbeddingCache] = None,
        config: Optional[Config] = None,
    ):
        self.loader = loader
        self.store = store
        self.blobs = blobs
        self.matcher = matcher or FirstMatchMatcher()
        self.pipeline_factory = pipeline_factory
        self.cache = cache
        self.config = config

        self._pipeline: Optional[FacePipeline] = None
        self._pipeline_bundle: Any = None
        self._lock = threading.Lock()

        logger.info(
            f"Initialized MatchService with threshold={self.matcher.threshold}, "
            f"cache={'on' if cache is not None else 'off'}"
        )

    def pipeline(self) -> FacePipeline:
        """Pipeline for the currently loaded bundle.

        Raises:
            ModelNotReadyError: If the bundle is still loading.
            ModelLoadError: If the bundle failed to load.
        """
        bundle = self.loader.get()
        with self._lock:
            if self._pipeline is None or self._pipeline_bundle is not bundle:
                self._pipeline = self.pipeline_factory(bundle, self.config)
                self._pipeline_bundle = bundle
            return self._pipeline

    def check_face(self, image_bytes: bytes) -> MatchVerdict:
        """Match a submitted photo against the registered records.

        Args:
            image_bytes: Encoded photo (JPEG, PNG, ...)

        Returns:
            MatchVerdict with the first matching record, or a no-match verdict.

        Raises:
            ModelNotReadyError: If models are not loaded yet.
            ImageDecodeError: If the submitted photo cannot be decoded.
            NoFaceDetectedError: If the submitted photo holds no face.
            PersistenceError: If the record store fails.
        """
        pipeline = self.pipeline()

        query = pipeline.embeddings(image_bytes)
        if not query:
            raise NoFaceDetectedError("No face detected in submitted image", stage=Stage.DETECTED)

        logger.debug(f"Query photo has {len(query)} face(s)")

        verdict = self.matcher.match(query, self._gallery(pipeline))

        if verdict.match:
            logger.info(f"Match found: {verdict.person!r} (distance={verdict.distance:.4f})")
        else:
            logger.info("No match found")

        self._save_cache()

        return verdict

    def _save_cache(self) -> None:
        """Persist new cache entries; a failed write only costs recomputation later."""
        if self.cache is None or self.cache.path is None or not self.cache.dirty:
            return
        try:
            self.cache.save()
        except PersistenceError as e:
            logger.warning(f"Embedding cache not saved: {e}")

    def _gallery(self, pipeline: FacePipeline) -> Iterator[GalleryEntry[PersonRecord]]:
        """Lazily yield gallery entries for records with a registered photo."""
        for record in self.store.find(RecordQuery()):
            if not record.picture:
                continue

            embeddings = self._gallery_embeddings(pipeline, record)
            if embeddings is None:
                continue
            if not embeddings:
                logger.warning(f"No face in registered photo of {record!r}, skipping")
                continue

            yield GalleryEntry(record=record, embeddings=embeddings)

    def _gallery_embeddings(
        self, pipeline: FacePipeline, record: PersonRecord
    ) -> Optional[List[Embedding]]:
        """Embeddings of a record's photo, or None when the photo is unusable."""
        model_id = pipeline.model_id

        if self.cache is not None and record.id is not None:
            cached = self.cache.get(record.id, record.picture, model_id)
            if cached is not None:
                return cached

        try:
            data = self.blobs.load(record.picture)
            embeddings = pipeline.embeddings(data)
        except BlobNotFoundError as e:
            logger.warning(f"Skipping {record!r}: {e}")
            return None
        except ImageDecodeError as e:
            logger.warning(f"Skipping {record!r}: registered photo undecodable ({e})")
            return None

        if self.cache is not None and record.id is not None:
            self.cache.put(record.id, record.picture, embeddings, model_id)

        return embeddings

    def __repr__(self) -> str:
        return f"MatchService(matcher={self.matcher!r}, loader={self.loader!r})"
