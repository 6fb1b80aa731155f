"""Unit tests for the gallery embedding cache."""

from __future__ import annotations

import pickle

import numpy as np
import pytest

from person_finder.core.errors import PersistenceError
from person_finder.core.interfaces import Embedding
from person_finder.storage.embedding_cache import EmbeddingCache

MODEL_ID = "test_model@000000000000"


@pytest.fixture
def embeddings():
    """Two embeddings from the test model."""
    rng = np.random.default_rng(3)
    return [Embedding(vector=rng.normal(size=128), model_id=MODEL_ID) for _ in range(2)]


def test_get_missing():
    """Test an unknown record is a miss."""
    cache = EmbeddingCache()

    assert cache.get("r1", "a.jpg", MODEL_ID) is None
    assert cache.misses == 1


def test_put_and_get(embeddings):
    """Test cached embeddings come back equal and in order."""
    cache = EmbeddingCache()
    cache.put("r1", "a.jpg", embeddings, MODEL_ID)

    assert cache.get("r1", "a.jpg", MODEL_ID) == embeddings
    assert cache.hits == 1
    assert "r1" in cache
    assert len(cache) == 1


def test_empty_result_cached():
    """Test that "no face" is cached as an empty list, not a miss."""
    cache = EmbeddingCache()
    cache.put("r1", "a.jpg", [], MODEL_ID)

    assert cache.get("r1", "a.jpg", MODEL_ID) == []


def test_stale_on_new_image(embeddings):
    """Test an entry is stale once the record points to another image."""
    cache = EmbeddingCache()
    cache.put("r1", "a.jpg", embeddings, MODEL_ID)

    assert cache.get("r1", "b.jpg", MODEL_ID) is None


def test_stale_on_new_model(embeddings):
    """Test an entry is stale for a different model."""
    cache = EmbeddingCache()
    cache.put("r1", "a.jpg", embeddings, MODEL_ID)

    assert cache.get("r1", "a.jpg", "other@111111111111") is None


def test_put_rejects_foreign_embeddings(embeddings):
    """Test embeddings must come from the model they are cached under."""
    cache = EmbeddingCache()

    with pytest.raises(ValueError):
        cache.put("r1", "a.jpg", embeddings, "other@111111111111")


def test_invalidate_and_clear(embeddings):
    """Test entries can be dropped."""
    cache = EmbeddingCache()
    cache.put("r1", "a.jpg", embeddings, MODEL_ID)
    cache.put("r2", "b.jpg", embeddings, MODEL_ID)

    assert cache.invalidate("r1")
    assert not cache.invalidate("r1")
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_save_and_load(tmp_path, embeddings):
    """Test the cache persists to its pickle file."""
    path = tmp_path / "embeddings.pkl"
    cache = EmbeddingCache(path)
    cache.put("r1", "a.jpg", embeddings, MODEL_ID)
    cache.save()

    reloaded = EmbeddingCache(path)

    assert reloaded.load() == 1
    assert reloaded.get("r1", "a.jpg", MODEL_ID) == embeddings


def test_load_without_file(tmp_path):
    """Test loading a cache that was never saved."""
    assert EmbeddingCache(tmp_path / "missing.pkl").load() == 0


def test_save_without_path():
    """Test save() needs a path."""
    with pytest.raises(PersistenceError):
        EmbeddingCache().save()


def test_failed_save_keeps_previous_file(tmp_path, monkeypatch, embeddings):
    """Test an interrupted write leaves the last saved cache readable."""
    path = tmp_path / "embeddings.pkl"
    cache = EmbeddingCache(path)
    cache.put("r1", "a.jpg", embeddings, MODEL_ID)
    cache.save()

    cache.put("r2", "b.jpg", embeddings, MODEL_ID)

    def truncated_dump(obj, f, *args, **kwargs):
        f.write(pickle.dumps(obj)[:10])
        raise OSError("disk full")

    monkeypatch.setattr(pickle, "dump", truncated_dump)

    with pytest.raises(PersistenceError):
        cache.save()

    monkeypatch.undo()

    reloaded = EmbeddingCache(path)
    assert reloaded.load() == 1
    assert reloaded.get("r1", "a.jpg", MODEL_ID) == embeddings
    assert list(tmp_path.iterdir()) == [path]
    assert cache.dirty


def test_dirty_tracking(tmp_path, embeddings):
    """Test only changes since the last save or load mark the cache dirty."""
    path = tmp_path / "embeddings.pkl"
    cache = EmbeddingCache(path)
    assert not cache.dirty

    cache.put("r1", "a.jpg", embeddings, MODEL_ID)
    assert cache.dirty

    cache.save()
    assert not cache.dirty

    cache.get("r1", "a.jpg", MODEL_ID)
    assert not cache.invalidate("missing")
    assert not cache.dirty

    assert cache.invalidate("r1")
    assert cache.dirty

    reloaded = EmbeddingCache(path)
    reloaded.load()
    assert not reloaded.dirty

    reloaded.clear()
    assert reloaded.dirty
