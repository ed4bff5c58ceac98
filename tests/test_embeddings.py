"""Tests for the embedding generator and its cache."""

import pytest

from synapse_memory.cache import LRUCache
from synapse_memory.errors import EmbeddingUnavailable
from synapse_memory.storage import embeddings
from synapse_memory.storage.embeddings import EmbeddingGenerator


class CountingEncoder:
    def __init__(self):
        self.calls = 0

    def encode(self, text):
        self.calls += 1
        return [float(len(text)), 1.0]


def test_lru_cache_evicts_oldest():
    cache = LRUCache(maxsize=2)
    cache["a"] = 1
    cache["b"] = 2
    assert cache.get("a") == 1
    cache["c"] = 3

    assert "b" not in cache
    assert list(cache) == ["a", "c"]
    assert cache.get("missing", "default") == "default"


def test_generator_caches_embeddings():
    generator = EmbeddingGenerator()
    encoder = CountingEncoder()
    generator.encoder = encoder
    generator._encoder_initialized = True

    assert generator("hello") == [5.0, 1.0]
    assert generator("hello") == [5.0, 1.0]
    assert encoder.calls == 1
    assert generator.is_available()


def test_generator_without_library_is_unavailable(monkeypatch):
    monkeypatch.setattr(embeddings, "EMBEDDINGS_AVAILABLE", False)
    generator = EmbeddingGenerator(lazy_load=True)

    with pytest.raises(EmbeddingUnavailable):
        generator("hello")
    assert not generator.is_available()


def test_gateway_reports_missing_embeddings(config, monkeypatch):
    from synapse_memory.memory_store import MemoryGateway

    monkeypatch.setattr(embeddings, "EMBEDDINGS_AVAILABLE", False)
    gateway = MemoryGateway(config)

    assert gateway.get_statistics()["backends"]["embeddings"] == "unavailable"
