"""
Data models for Synapse Memory System
Copyright 2025 Jurden Bruce

All timestamps are integer epoch milliseconds, matching the persisted JSON
layout (``created``, ``lastSeen``, ``expired``, ``timestamp``).
"""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, List, Optional

from .errors import ValidationFailure

DEFAULT_NODE_TYPE = "ENTITY"


@dataclass
class Node:
    """Graph entity, keyed by its normalized label"""
    id: str
    label: str
    created: int
    last_seen: int
    type: str = DEFAULT_NODE_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "created": self.created,
            "lastSeen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        created = int(data["created"])
        return cls(
            id=data["id"],
            label=data.get("label", data["id"]),
            created=created,
            last_seen=int(data.get("lastSeen", created)),
            type=data.get("type") or DEFAULT_NODE_TYPE,
        )


@dataclass
class Edge:
    """Time-stamped relation between two nodes.

    An edge with ``expired`` unset is active (the current truth); expired
    edges are kept as history and never removed.
    """
    source: str
    target: str
    relation: str
    created: int
    weight: float = 1.0
    last_seen: Optional[int] = None
    expired: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.expired is None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "source": self.source,
            "target": self.target,
            "relation": self.relation,
            "weight": self.weight,
            "created": self.created,
        }
        if self.last_seen is not None:
            data["lastSeen"] = self.last_seen
        if self.expired is not None:
            data["expired"] = self.expired
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        last_seen = data.get("lastSeen")
        expired = data.get("expired")
        return cls(
            source=data["source"],
            target=data["target"],
            relation=data["relation"],
            created=int(data["created"]),
            weight=float(data.get("weight", 1.0)),
            last_seen=int(last_seen) if last_seen is not None else None,
            expired=int(expired) if expired else None,
        )


@dataclass(frozen=True)
class Triple:
    """Validated (source, relation, target) fact submitted for merging"""
    source: str
    relation: str
    target: str
    source_type: Optional[str] = None
    target_type: Optional[str] = None

    REQUIRED_FIELDS = ("source", "relation", "target")

    @classmethod
    def from_dict(cls, data: Any, index: Optional[int] = None) -> "Triple":
        """Build a triple from loose input, rejecting anything malformed

        Args:
            data: Mapping with source/relation/target (or an existing Triple)
            index: Position in the submitted batch, reported on failure

        Raises:
            ValidationFailure: missing or empty field, or non-mapping input
        """
        if isinstance(data, Triple):
            return data
        if not isinstance(data, dict):
            raise ValidationFailure(
                f"expected an object with source/relation/target, got {type(data).__name__}",
                index=index,
            )

        values = {}
        for name in cls.REQUIRED_FIELDS:
            value = data.get(name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationFailure(
                    f"'{name}' must be a non-empty string", index=index, field=name
                )
            values[name] = value.strip()

        for name in ("source_type", "target_type"):
            value = data.get(name)
            if value is not None and (not isinstance(value, str) or not value.strip()):
                raise ValidationFailure(
                    f"'{name}' must be a non-empty string when given", index=index, field=name
                )
            values[name] = value.strip() if value else None

        return cls(**values)


@dataclass
class VectorRecord:
    """Text fragment indexed by its embedding"""
    id: str
    content: str
    embedding: List[float]
    timestamp: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "embedding": self.embedding,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Record without the raw vector, as returned to callers"""
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VectorRecord":
        return cls(
            id=str(data["id"]),
            content=data.get("content") or "",
            embedding=[float(x) for x in data["embedding"]],
            timestamp=int(data.get("timestamp") or 0),
            metadata=data.get("metadata") or {},
        )


def validate_embedding(embedding: Any, name: str = "embedding") -> List[float]:
    """Coerce an embedding to a list of floats, rejecting malformed vectors"""
    if isinstance(embedding, (str, bytes)) or not hasattr(embedding, "__iter__"):
        raise ValidationFailure(f"'{name}' must be a list of numbers", field=name)

    values = list(embedding)
    if not values:
        raise ValidationFailure(f"'{name}' must not be empty", field=name)
    for value in values:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValidationFailure(f"'{name}' must contain only numbers", field=name)
        if not math.isfinite(value):
            raise ValidationFailure(f"'{name}' must contain only finite numbers", field=name)
    return [float(v) for v in values]
