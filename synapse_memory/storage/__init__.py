"""
Storage backends for Synapse Memory System
Copyright 2025 Jurden Bruce
"""

from .embeddings import EmbeddingGenerator, EmbeddingProvider
from .json_store import JsonFileStore
from .vector_store import VectorStore

__all__ = ['EmbeddingGenerator', 'EmbeddingProvider', 'JsonFileStore', 'VectorStore']
