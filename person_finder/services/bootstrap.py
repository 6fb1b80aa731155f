"""Service wiring from configuration.

Builds the stores, the optional embedding cache, the model readiness gate
and both services. Model loading is not started here; callers choose
``services.loader.load()`` (blocking) or ``services.loader.start()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Optional

from person_finder.backends.factory import load_bundle
from person_finder.core.config import Config, get_config
from person_finder.core.errors import PersistenceError
from person_finder.core.logging_config import get_logger
from person_finder.services.matching import MatchService
from person_finder.services.model_loader import ModelLoader
from person_finder.services.registry import PersonRegistry
from person_finder.storage.blobs import LocalBlobStore
from person_finder.storage.embedding_cache import EmbeddingCache
from person_finder.storage.records import JsonRecordStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Container for the wired services.

    Attributes:
        registry: Record keeping service
        matching: Face match service
        loader: Model readiness gate shared with the match service
        cache: Gallery embedding cache, None when disabled
    """

    registry: PersonRegistry
    matching: MatchService
    loader: ModelLoader
    cache: Optional[EmbeddingCache]


def create_services(config: Config | None = None) -> Services:
    """Create services backed by the on-disk stores under ``config.data_dir``.

    Raises:
        PersistenceError: If the records file cannot be read. An unreadable
            embedding cache is logged and replaced by an empty one.
    """
    if config is None:
        config = get_config()

    store = JsonRecordStore(config.records_path)
    blobs = LocalBlobStore(config.uploads_dir)

    cache = None
    if config.embedding_cache:
        cache = EmbeddingCache(config.cache_path)
        try:
            cache.load()
        except PersistenceError as e:
            logger.warning(f"Ignoring unreadable embedding cache, starting empty: {e}")

    loader = ModelLoader(partial(load_bundle, config))

    services = Services(
        registry=PersonRegistry(store, blobs, cache=cache, recent_limit=config.recent_limit),
        matching=MatchService(loader, store, blobs, cache=cache, config=config),
        loader=loader,
        cache=cache,
    )

    logger.info(f"Services ready (data={config.data_dir}, records={len(store)})")
    return services
