"""
Error taxonomy for Synapse Memory System
Copyright 2025 Jurden Bruce

Absence (unknown entity, unknown record id) is never an error here; lookups
return empty results or None instead.
"""

from typing import Optional


class MemoryStoreError(Exception):
    """Base class for all memory subsystem errors"""


class StorageCorruption(MemoryStoreError):
    """Persisted store file could not be read or parsed"""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt store file {path}: {reason}")


class StorageWriteError(MemoryStoreError):
    """Snapshot could not be written; the mutation was not applied"""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write store file {path}: {reason}")


class DimensionMismatch(MemoryStoreError):
    """Vector upsert whose embedding length disagrees with the store"""

    def __init__(self, expected: int, actual: int, record_id: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        target = f" for record '{record_id}'" if record_id else ""
        super().__init__(
            f"Embedding dimension mismatch{target}: store uses {expected}, got {actual}"
        )


class ValidationFailure(MemoryStoreError):
    """Malformed input rejected before any mutation"""

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        self.index = index
        self.field = field
        prefix = f"triple #{index}: " if index is not None else ""
        super().__init__(f"{prefix}{message}")


class EmbeddingUnavailable(MemoryStoreError):
    """Embedding provider failed, timed out, or returned nothing"""
