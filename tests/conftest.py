"""Shared fixtures for the Synapse Memory test suite."""

import zlib
from pathlib import Path
from typing import Dict, List

import pytest

from synapse_memory.config import MemoryConfig
from synapse_memory.graph_ops import GraphStore
from synapse_memory.memory_store import MemoryGateway
from synapse_memory.storage.vector_store import VectorStore

START_MS = 1_700_000_000_000
HOUR_MS = 3600 * 1000
DAY_MS = 24 * HOUR_MS


class FakeClock:
    """Deterministic epoch-millisecond clock"""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeEmbedder:
    """Bag-of-words embedding over a small hashed vocabulary.

    Texts sharing words get similar vectors; ``fixed`` pins exact vectors.
    """

    dimension = 8

    def __init__(self, fixed: Dict[str, List[float]] = None):
        self.fixed = dict(fixed or {})
        self.calls: List[str] = []

    def __call__(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.fixed:
            return list(self.fixed[text])
        vector = [0.0] * self.dimension
        for word in text.lower().split():
            vector[zlib.crc32(word.encode()) % self.dimension] += 1.0
        return vector

    def is_available(self) -> bool:
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path: Path) -> MemoryConfig:
    return MemoryConfig(data_dir=tmp_path / "memory_data")


@pytest.fixture
def graph(config: MemoryConfig, clock: FakeClock) -> GraphStore:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    return GraphStore(config.graph_path, clock=clock)


@pytest.fixture
def vectors(config: MemoryConfig, clock: FakeClock) -> VectorStore:
    return VectorStore(config.vector_path, clock=clock)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def gateway(config: MemoryConfig, embedder: FakeEmbedder, clock: FakeClock) -> MemoryGateway:
    return MemoryGateway(config, embed=embedder, clock=clock)
