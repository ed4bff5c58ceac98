"""
Memory gateway for Synapse Memory System
Copyright 2025 Jurden Bruce

The single entry point the agent tool layer talks to. Owns the knowledge
graph and the vector store, and is the only component that mutates them.
Each store serializes its own writers; the two stores are independent, so an
operation on one is not atomic with respect to the other.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .config import MemoryConfig
from .errors import DimensionMismatch, EmbeddingUnavailable, ValidationFailure
from .graph_ops import GraphStore
from .storage.embeddings import EmbeddingGenerator, EmbeddingProvider
from .storage.vector_store import VectorStore
from .utils import log_error, now_ms

logger = logging.getLogger("synapse-memory.gateway")


class MemoryGateway:
    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        embed: Optional[EmbeddingProvider] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            config: Paths and tuning values (defaults to MemoryConfig.from_env())
            embed: Text -> vector provider used by remember/recall; defaults to
                a lazily loaded sentence-transformers model
            clock: Returns "now" in epoch milliseconds
        """
        self.config = config or MemoryConfig.from_env()
        self.clock = clock or now_ms
        self.error_log: List[Dict[str, Any]] = []
        self.started_at = datetime.now()

        init_start = time.perf_counter()
        self._init_directories()

        self.graph = GraphStore(
            self.config.graph_path,
            exclusive_relations=self.config.exclusive_relations,
            reinforcement_increment=self.config.reinforcement_increment,
            clock=self.clock,
            error_log=self.error_log,
        )
        self.vectors = VectorStore(
            self.config.vector_path,
            clock=self.clock,
            error_log=self.error_log,
        )

        if embed is None:
            embed = EmbeddingGenerator(
                model_name=self.config.embedding_model,
                cache_maxsize=self.config.cache_maxsize,
                error_log=self.error_log,
                lazy_load=True,
            )
        self.embedder = embed

        logger.info(f"[TIMING] MemoryGateway initialized in {(time.perf_counter() - init_start)*1000:.2f}ms")

    def _init_directories(self):
        """Create necessary directories"""
        try:
            self.config.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Memory data directory: {self.config.data_dir}")
        except OSError as e:
            logger.error(f"Directory initialization failed: {e}")
            raise

    # ------------------------------------------------------------------
    # Knowledge graph
    # ------------------------------------------------------------------

    async def merge_triples(self, triples: Iterable[Any]) -> Dict[str, int]:
        """Merge a batch of (source, relation, target) facts atomically"""
        return await asyncio.to_thread(self.graph.merge_triples, triples)

    async def query_entity(
        self,
        entity: str,
        depth: Optional[int] = None,
        include_history: bool = False,
    ) -> Dict[str, Any]:
        """Bounded breadth-first neighbourhood of an entity"""
        if depth is None:
            depth = self.config.default_query_depth
        return await asyncio.to_thread(self.graph.query_entity, entity, depth, include_history)

    async def export_graph(self, max_age: Union[int, float, timedelta, None] = None) -> Dict[str, Any]:
        """Graph for visualization; expired edges older than *max_age* (seconds) are dropped"""
        if max_age is None:
            max_age = timedelta(days=self.config.expired_edge_max_age_days)
        elif not isinstance(max_age, timedelta):
            if isinstance(max_age, bool) or not isinstance(max_age, (int, float)) or max_age < 0:
                raise ValidationFailure("'max_age' must be a non-negative number of seconds", field="max_age")
        return await asyncio.to_thread(self.graph.export_for_visualization, max_age)

    # ------------------------------------------------------------------
    # Vector store
    # ------------------------------------------------------------------

    async def upsert_vector(
        self,
        record_id: str,
        content: str,
        embedding: List[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        await asyncio.to_thread(self.vectors.upsert, record_id, content, embedding, metadata)
        return {"success": True}

    async def search_vectors(
        self,
        embedding: List[float],
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        if limit is None:
            limit = self.config.default_search_limit
        if threshold is None:
            threshold = self.config.similarity_threshold
        return await asyncio.to_thread(self.vectors.search, embedding, limit, threshold)

    async def get_vector(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Stored record without its embedding, or None"""
        record = await asyncio.to_thread(self.vectors.get, record_id)
        return record.to_public_dict() if record else None

    async def _embed(self, text: str) -> List[float]:
        """Run the embedding provider outside any store lock, bounded by the timeout

        Raises:
            EmbeddingUnavailable: provider missing, failing, slow, or empty
        """
        if self.embedder is None:
            raise EmbeddingUnavailable("No embedding provider configured")

        try:
            vector = await asyncio.wait_for(
                asyncio.to_thread(self.embedder, text),
                timeout=self.config.embedding_timeout,
            )
        except asyncio.TimeoutError as e:
            log_error(self.error_log, "embed_timeout", e)
            raise EmbeddingUnavailable(
                f"Embedding timed out after {self.config.embedding_timeout}s"
            ) from e
        except EmbeddingUnavailable as e:
            log_error(self.error_log, "embed", e)
            raise
        except Exception as e:
            logger.error(f"Embedding generation failed: {e}")
            log_error(self.error_log, "embed", e)
            raise EmbeddingUnavailable(f"Embedding generation failed: {e}") from e

        if not vector:
            raise EmbeddingUnavailable("Embedding provider returned an empty vector")
        return list(vector)

    async def remember(
        self,
        content: str,
        record_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Embed *content* and store it; nothing is written if embedding fails"""
        if not isinstance(content, str) or not content.strip():
            raise ValidationFailure("'content' must be a non-empty string", field="content")

        try:
            vector = await self._embed(content)
        except EmbeddingUnavailable as e:
            logger.warning(f"Memory not stored: {e}")
            return {"success": False, "error": str(e)}

        record_id = record_id or str(uuid.uuid4())
        await self.upsert_vector(record_id, content, vector, metadata)
        return {"success": True, "id": record_id}

    async def recall(self, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Semantic search for *query*, falling back to keyword matching

        Each result has ``match`` set to ``"vector"`` or ``"keyword"``. The
        keyword pass runs when no embedding is available, the vector search
        fails, or it finds nothing.
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationFailure("'query' must be a non-empty string", field="query")
        if limit is None:
            limit = self.config.default_search_limit

        try:
            vector = await self._embed(query)
            results = await self.search_vectors(vector, limit)
        except (EmbeddingUnavailable, DimensionMismatch) as e:
            logger.warning(f"Vector recall failed, falling back to keyword match: {e}")
            results = []

        if results:
            for hit in results:
                hit["match"] = "vector"
            return results

        results = await asyncio.to_thread(self.vectors.keyword_search, query, limit)
        for hit in results:
            hit["match"] = "keyword"
        return results

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def wipe(self) -> Dict[str, Any]:
        """Replace both stores with empty ones (factory reset)"""
        await asyncio.to_thread(self.graph.wipe)
        await asyncio.to_thread(self.vectors.wipe)
        logger.info("Memory wiped")
        return {"success": True}

    def get_statistics(self) -> Dict[str, Any]:
        """Get system statistics"""
        embeddings_available = False
        if self.embedder is not None:
            is_available = getattr(self.embedder, "is_available", None)
            embeddings_available = is_available() if callable(is_available) else True

        return {
            "graph": self.graph.stats(),
            "vectors": {
                "records": self.vectors.count(),
                "dimension": self.vectors.dimension,
            },
            "files": {
                "graph": str(self.graph.path),
                "vectors": str(self.vectors.path),
            },
            "backends": {
                "embeddings": "available" if embeddings_available else "unavailable",
            },
            "exclusive_relations": sorted(self.graph.exclusive_relations),
            "uptime_seconds": round((datetime.now() - self.started_at).total_seconds(), 1),
            "recent_errors": len(self.error_log),
        }

    async def shutdown(self):
        """Gracefully shutdown the gateway"""
        logger.info("Shutting down MemoryGateway...")
        if self.error_log:
            logger.info(f"{len(self.error_log)} errors recorded this session")
        logger.info("MemoryGateway shutdown complete")
