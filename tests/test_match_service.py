"""Unit tests for the match service, with a scripted pipeline."""

from __future__ import annotations

from typing import Dict, List, Union
from unittest.mock import Mock

import numpy as np
import pytest

from person_finder.core.errors import (
    ImageDecodeError,
    ModelLoadError,
    ModelNotReadyError,
    NoFaceDetectedError,
)
from person_finder.core.interfaces import Embedding, Stage
from person_finder.services.matching import MatchService
from person_finder.services.model_loader import ModelLoader
from person_finder.services.registry import PersonRegistry
from person_finder.storage import EmbeddingCache, InMemoryRecordStore, LocalBlobStore

MODEL_ID = "test_model@000000000000"


def embedding_at(distance: float) -> Embedding:
    """Embedding at the given distance from the query face."""
    vector = np.zeros(128)
    vector[0] = distance
    return Embedding(vector=vector, model_id=MODEL_ID)


class ScriptedPipeline:
    """Pipeline double mapping image bytes to embeddings (or an error)."""

    model_id = MODEL_ID

    def __init__(self, script: Dict[bytes, Union[List[Embedding], Exception]]):
        self.script = script
        self.calls: List[bytes] = []

    def embeddings(self, data: bytes) -> List[Embedding]:
        self.calls.append(data)
        result = self.script[data]
        if isinstance(result, Exception):
            raise result
        return list(result)


@pytest.fixture
def script():
    """Script shared by the pipeline; tests add gallery images to it."""
    return {b"query": [embedding_at(0.0)], b"faceless-query": []}


@pytest.fixture
def pipeline(script):
    """Create the scripted pipeline."""
    return ScriptedPipeline(script)


@pytest.fixture
def loader():
    """Create a loader whose bundle is already loaded."""
    loader = ModelLoader(Mock(return_value="bundle"))
    loader.load()
    return loader


@pytest.fixture
def store():
    """Create an in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def registry(store, tmp_path):
    """Create a registry sharing the service's stores."""
    return PersonRegistry(store, LocalBlobStore(tmp_path / "uploads"))


@pytest.fixture
def service(loader, store, registry, pipeline):
    """Create a match service without cache."""
    factory = Mock(return_value=pipeline)
    return MatchService(loader, store, registry.blobs, pipeline_factory=factory)


def register(registry, script, name, result):
    """Register a person whose photo the pipeline will answer with 'result'."""
    image = f"photo-{name}".encode()
    script[image] = result
    return registry.add_person(image=image, name=name)


def test_end_to_end_first_record_wins(service, registry, script):
    """Test R1 at 0.4 is returned even though it is registered before R2."""
    r1 = register(registry, script, "R1", [embedding_at(0.4)])
    register(registry, script, "R2", [embedding_at(0.8)])

    verdict = service.check_face(b"query")

    assert verdict.match
    assert verdict.person.id == r1.id
    assert verdict.distance == pytest.approx(0.4)
    assert verdict.to_dict()["person"]["name"] == "R1"


def test_first_match_not_nearest(service, registry, script):
    """Test R2 (0.4) wins over a closer R3 (0.2) that comes later."""
    register(registry, script, "R1", [embedding_at(0.8)])
    register(registry, script, "R2", [embedding_at(0.4)])
    register(registry, script, "R3", [embedding_at(0.2)])

    verdict = service.check_face(b"query")

    assert verdict.person.name == "R2"


def test_no_match(service, registry, script):
    """Test a gallery where nobody is close enough."""
    register(registry, script, "R1", [embedding_at(0.61)])

    verdict = service.check_face(b"query")

    assert not verdict.match
    assert verdict.to_dict() == {"match": False}


def test_empty_gallery(service):
    """Test that no registered records yield a no-match verdict."""
    assert not service.check_face(b"query").match


def test_query_without_face(service, registry, script, pipeline):
    """Test a faceless query fails before any gallery image is processed."""
    register(registry, script, "R1", [embedding_at(0.1)])

    with pytest.raises(NoFaceDetectedError) as exc_info:
        service.check_face(b"faceless-query")

    assert exc_info.value.client_error
    assert exc_info.value.stage == Stage.DETECTED
    assert pipeline.calls == [b"faceless-query"]


def test_undecodable_query(service, script):
    """Test a broken query photo is a decode failure."""
    script[b"junk"] = ImageDecodeError("broken", stage=Stage.LOADED)

    with pytest.raises(ImageDecodeError):
        service.check_face(b"junk")


def test_gallery_failures_skipped(service, registry, script):
    """Test undecodable, missing and faceless gallery photos are skipped."""
    register(registry, script, "Undecodable", ImageDecodeError("broken"))
    missing = register(registry, script, "Missing", [embedding_at(0.1)])
    registry.blobs.delete(missing.picture)
    register(registry, script, "Faceless", [])
    registry.add_person(name="No photo")
    register(registry, script, "Match", [embedding_at(0.3)])

    verdict = service.check_face(b"query")

    assert verdict.person.name == "Match"


def test_gallery_walk_stops_at_first_match(service, registry, script, pipeline):
    """Test records after the winner are never processed."""
    register(registry, script, "R1", [embedding_at(0.2)])
    register(registry, script, "R2", [embedding_at(0.1)])

    service.check_face(b"query")

    assert pipeline.calls == [b"query", b"photo-R1"]


def test_found_records_still_searched(service, registry, script):
    """Test marking a person found keeps them in the gallery."""
    record = register(registry, script, "R1", [embedding_at(0.2)])
    registry.mark_found(record.id)

    assert service.check_face(b"query").match


def test_model_not_ready(store, registry, pipeline):
    """Test requests fail fast before models are loaded."""
    loader = ModelLoader(Mock(return_value="bundle"))
    factory = Mock(return_value=pipeline)
    service = MatchService(loader, store, registry.blobs, pipeline_factory=factory)

    with pytest.raises(ModelNotReadyError):
        service.check_face(b"query")

    factory.assert_not_called()


def test_model_load_failed(store, registry):
    """Test a failed model load is reported on every request."""
    loader = ModelLoader(Mock(side_effect=ModelLoadError("weights missing")))
    with pytest.raises(ModelLoadError):
        loader.load()
    service = MatchService(loader, store, registry.blobs, pipeline_factory=Mock())

    with pytest.raises(ModelLoadError):
        service.check_face(b"query")


def test_pipeline_built_once_per_bundle(service, registry, script):
    """Test the pipeline is reused between requests."""
    register(registry, script, "R1", [embedding_at(0.2)])

    service.check_face(b"query")
    service.check_face(b"query")

    service.pipeline_factory.assert_called_once_with("bundle", None)


def test_recompute_without_cache(service, registry, script, pipeline):
    """Test gallery photos are described on every request by default."""
    register(registry, script, "R1", [embedding_at(0.9)])

    service.check_face(b"query")
    service.check_face(b"query")

    assert pipeline.calls.count(b"photo-R1") == 2


def test_cache_reuses_gallery_embeddings(loader, store, registry, script, pipeline):
    """Test cached gallery embeddings replace the pipeline run."""
    cache = EmbeddingCache()
    service = MatchService(
        loader, store, registry.blobs, pipeline_factory=Mock(return_value=pipeline), cache=cache
    )
    register(registry, script, "Faceless", [])
    register(registry, script, "R1", [embedding_at(0.9)])

    first = service.check_face(b"query")
    second = service.check_face(b"query")

    assert first == second
    assert pipeline.calls.count(b"photo-Faceless") == 1
    assert pipeline.calls.count(b"photo-R1") == 1
    assert cache.hits == 2


def test_cache_refreshed_on_new_photo(loader, store, registry, script, pipeline):
    """Test a record whose photo changed is described again."""
    cache = EmbeddingCache()
    service = MatchService(
        loader, store, registry.blobs, pipeline_factory=Mock(return_value=pipeline), cache=cache
    )
    record = register(registry, script, "R1", [embedding_at(0.9)])
    assert not service.check_face(b"query").match

    script[b"new-photo"] = [embedding_at(0.1)]
    record.picture = registry.blobs.store(b"new-photo", ".jpg")
    store.save(record)

    assert service.check_face(b"query").match


def test_cache_write_failure_keeps_verdict(loader, store, registry, script, pipeline, tmp_path):
    """Test an unwritable cache file does not cost the caller the verdict."""
    cache_path = tmp_path / "cachedir"
    cache_path.mkdir()
    cache = EmbeddingCache(cache_path)
    service = MatchService(
        loader, store, registry.blobs, pipeline_factory=Mock(return_value=pipeline), cache=cache
    )
    r1 = register(registry, script, "R1", [embedding_at(0.3)])

    verdict = service.check_face(b"query")

    assert verdict.match
    assert verdict.person.id == r1.id
    assert cache.dirty


def test_cache_written_only_when_changed(loader, store, registry, script, pipeline, tmp_path):
    """Test repeated requests over an unchanged gallery write the cache once."""
    cache = EmbeddingCache(tmp_path / "embeddings.pkl")
    cache.save = Mock(wraps=cache.save)
    service = MatchService(
        loader, store, registry.blobs, pipeline_factory=Mock(return_value=pipeline), cache=cache
    )
    register(registry, script, "R1", [embedding_at(0.9)])

    service.check_face(b"query")
    service.check_face(b"query")

    assert cache.save.call_count == 1
    assert not cache.dirty
    assert EmbeddingCache(tmp_path / "embeddings.pkl").load() == 1
