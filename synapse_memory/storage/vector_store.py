"""
Vector similarity store for Synapse Memory System
Copyright 2025 Jurden Bruce

Brute-force cosine search over a JSON-persisted list of records. Linear scan
is plenty for the thousands of fragments an assistant accumulates.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import DimensionMismatch, ValidationFailure
from ..models import VectorRecord, validate_embedding
from ..utils import cosine_similarity, now_ms
from .json_store import JsonFileStore

logger = logging.getLogger("synapse-memory.vectors")

DEFAULT_THRESHOLD = 0.4


def _parse_records(raw: Any) -> Tuple[VectorRecord, ...]:
    if not isinstance(raw, list):
        raise TypeError(f"vector store root must be a list, got {type(raw).__name__}")
    return tuple(VectorRecord.from_dict(r) for r in raw)


class VectorStore:
    """File-backed list of embedded text fragments.

    The published snapshot is an immutable tuple; upserts build a new tuple
    under the write lock and swap it in after the file write succeeds.
    """

    def __init__(
        self,
        path: Path,
        clock: Optional[Callable[[], int]] = None,
        error_log: Optional[List[Dict[str, Any]]] = None,
    ):
        self.clock = clock or now_ms
        self.error_log = error_log if error_log is not None else []
        self._lock = threading.Lock()
        self._file = JsonFileStore(path, list, self.error_log)
        self._records: Tuple[VectorRecord, ...] = self._file.load_or_empty(_parse_records)
        logger.info(f"Vector store loaded from {self._file.path}: {len(self._records)} records")

    @property
    def path(self) -> Path:
        return self._file.path

    def _reload_if_changed(self):
        if self._file.has_changed():
            logger.info(f"Vector file {self._file.path} changed on disk, reloading")
            self._records = self._file.load_or_empty(_parse_records)

    def _current(self) -> Tuple[VectorRecord, ...]:
        if self._file.has_changed():
            with self._lock:
                self._reload_if_changed()
        return self._records

    def _save(self, records: Tuple[VectorRecord, ...]):
        self._file.save([r.to_dict() for r in records])
        self._records = records

    # ── Mutations ────────────────────────────────────────────

    def upsert(
        self,
        record_id: str,
        content: str,
        embedding: List[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> VectorRecord:
        """Insert a record, or fully replace the one with the same id

        Raises:
            ValidationFailure: bad id, content, metadata or embedding
            DimensionMismatch: embedding length differs from the stored records
        """
        if not isinstance(record_id, str) or not record_id.strip():
            raise ValidationFailure("'id' must be a non-empty string", field="id")
        if not isinstance(content, str):
            raise ValidationFailure("'content' must be a string", field="content")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationFailure("'metadata' must be an object", field="metadata")
        vector = validate_embedding(embedding)

        with self._lock:
            self._reload_if_changed()
            current = self._records

            others = [r for r in current if r.id != record_id]
            if others and others[0].dimension != len(vector):
                raise DimensionMismatch(others[0].dimension, len(vector), record_id)

            record = VectorRecord(
                id=record_id,
                content=content,
                embedding=vector,
                metadata=dict(metadata or {}),
                timestamp=self.clock(),
            )

            replaced = False
            records = []
            for existing in current:
                if existing.id == record_id:
                    records.append(record)
                    replaced = True
                else:
                    records.append(existing)
            if not replaced:
                records.append(record)

            self._save(tuple(records))

        preview = content[:40] + "..." if len(content) > 40 else content
        logger.info(f"[VECTOR] Embedding {'replaced' if replaced else 'stored'} for: \"{preview}\"")
        return record

    def remove(self, record_id: str) -> bool:
        """Remove by ID.  Returns True if it existed."""
        with self._lock:
            self._reload_if_changed()
            records = tuple(r for r in self._records if r.id != record_id)
            if len(records) == len(self._records):
                return False
            self._save(records)
        logger.info(f"[VECTOR] Removed record {record_id}")
        return True

    def wipe(self):
        with self._lock:
            self._save(())
        logger.info("[VECTOR] Wiped")

    # ── Reads ────────────────────────────────────────────────

    def get(self, record_id: str) -> Optional[VectorRecord]:
        for record in self._current():
            if record.id == record_id:
                return record
        return None

    def count(self) -> int:
        return len(self._current())

    @property
    def dimension(self) -> Optional[int]:
        """Dimensionality fixed by the stored records, None while empty"""
        records = self._current()
        return records[0].dimension if records else None

    def search(
        self,
        query_embedding: List[float],
        limit: int = 5,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> List[Dict[str, Any]]:
        """
        Rank every record by cosine similarity to the query.

        Parameters
        ----------
        query_embedding : list[float]
            The query vector; must match the store's dimensionality.
        limit : int
            Max results to return.
        threshold : float
            Results must score strictly above this.

        Returns records without their embedding, each with a ``similarity`` key,
        most similar first.
        """
        query = validate_embedding(query_embedding, name="query_embedding")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationFailure("'limit' must be a non-negative integer", field="limit")

        records = self._current()
        if not records or limit == 0:
            return []

        if records[0].dimension != len(query):
            raise DimensionMismatch(records[0].dimension, len(query))

        scored = [(record, cosine_similarity(query, record.embedding)) for record in records]
        scored.sort(key=lambda item: item[1], reverse=True)

        results = []
        for record, similarity in scored:
            if not similarity > threshold:
                break
            hit = record.to_public_dict()
            hit["similarity"] = similarity
            results.append(hit)
            if len(results) >= limit:
                break

        logger.debug(f"[VECTOR] Search found {len(results)} matches")
        return results

    def keyword_search(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Case-insensitive substring match on content, in stored order

        Results carry ``similarity: None`` since no vector was compared.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationFailure("'limit' must be a non-negative integer", field="limit")
        needle = query.strip().lower()
        if not needle or limit == 0:
            return []

        results = []
        for record in self._current():
            if needle in record.content.lower():
                hit = record.to_public_dict()
                hit["similarity"] = None
                results.append(hit)
                if len(results) >= limit:
                    break

        logger.debug(f"[VECTOR] Keyword search found {len(results)} matches")
        return results
