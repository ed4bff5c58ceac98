"""
Embedding generation for Synapse Memory System
Copyright 2025 Jurden Bruce
"""

import hashlib
import importlib.util
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Protocol

from ..cache import LRUCache
from ..errors import EmbeddingUnavailable
from ..utils import log_error

logger = logging.getLogger("synapse-memory.embeddings")

# Check availability without importing the heavy library
EMBEDDINGS_AVAILABLE = importlib.util.find_spec("sentence_transformers") is not None

if not EMBEDDINGS_AVAILABLE:
    logger.warning("SentenceTransformers not available - text embeddings disabled")


class EmbeddingProvider(Protocol):
    """Maps text to a fixed-length vector"""

    def __call__(self, text: str) -> List[float]:
        ...


class EmbeddingGenerator:
    """Sentence-transformers embeddings with caching and lazy model load"""

    def __init__(
        self,
        model_name: str = "all-mpnet-base-v2",
        cache_maxsize: int = 1000,
        error_log: Optional[List[Dict[str, Any]]] = None,
        lazy_load: bool = True,
    ):
        """
        Initialize embedding generator

        Args:
            model_name: SentenceTransformer model to load
            cache_maxsize: Number of embeddings kept in the LRU cache
            error_log: Shared error log list
            lazy_load: If True, delay encoder initialization until first use
        """
        self.model_name = model_name
        self.embedding_cache = LRUCache(maxsize=cache_maxsize)
        self.error_log = error_log if error_log is not None else []
        self.lazy_load = lazy_load
        self.encoder = None
        self._encoder_initialized = False
        self._init_lock = threading.Lock()

        if not lazy_load:
            self._ensure_encoder()

    def _ensure_encoder(self):
        """Ensure encoder is initialized (lazy loading support)"""
        if self._encoder_initialized:
            return

        with self._init_lock:
            if self._encoder_initialized:
                return
            start = time.perf_counter()
            self._init_encoder()
            self._encoder_initialized = True
            logger.info(f"[LAZY] Encoder loaded on-demand in {(time.perf_counter() - start)*1000:.2f}ms")

    def _init_encoder(self):
        """Initialize sentence encoder"""
        if not EMBEDDINGS_AVAILABLE:
            logger.warning("SentenceTransformers not available, embeddings cannot be generated")
            return

        try:
            # Import only when actually needed (lazy loading)
            from sentence_transformers import SentenceTransformer

            self.encoder = SentenceTransformer(self.model_name, device="cpu")
            logger.info(f"Encoder {self.model_name} initialized")
        except Exception as e:
            logger.error(f"Encoder initialization failed: {e}")
            log_error(self.error_log, "encoder_init", e)
            self.encoder = None

    def generate_embedding(self, text: str) -> List[float]:
        """Generate embedding with caching

        Raises:
            EmbeddingUnavailable: no encoder could be loaded
        """
        text_hash = hashlib.md5(text.encode()).hexdigest()
        cached = self.embedding_cache.get(text_hash)
        if cached is not None:
            return cached

        self._ensure_encoder()
        if self.encoder is None:
            raise EmbeddingUnavailable(f"Embedding model '{self.model_name}' is not available")

        embedding = [float(x) for x in self.encoder.encode(text)]
        self.embedding_cache[text_hash] = embedding
        return embedding

    __call__ = generate_embedding

    def is_available(self) -> bool:
        """Check if the encoder is (or can be) loaded"""
        if self._encoder_initialized:
            return self.encoder is not None
        return EMBEDDINGS_AVAILABLE
