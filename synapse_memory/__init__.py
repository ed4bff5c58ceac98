"""
Synapse Memory System
Copyright 2025 Jurden Bruce

Temporal knowledge graph plus vector similarity store, persisted as JSON files.
"""

from .config import DEFAULT_EXCLUSIVE_RELATIONS, MemoryConfig
from .errors import (
    DimensionMismatch,
    EmbeddingUnavailable,
    MemoryStoreError,
    StorageCorruption,
    StorageWriteError,
    ValidationFailure,
)
from .graph_ops import GraphStore
from .memory_store import MemoryGateway
from .models import Edge, Node, Triple, VectorRecord
from .storage.vector_store import VectorStore

__version__ = "1.0.0"

__all__ = [
    'DEFAULT_EXCLUSIVE_RELATIONS',
    'DimensionMismatch',
    'Edge',
    'EmbeddingUnavailable',
    'GraphStore',
    'MemoryConfig',
    'MemoryGateway',
    'MemoryStoreError',
    'Node',
    'StorageCorruption',
    'StorageWriteError',
    'Triple',
    'ValidationFailure',
    'VectorRecord',
    'VectorStore',
]
