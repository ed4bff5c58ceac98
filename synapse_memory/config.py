"""
Configuration for Synapse Memory System
Copyright 2025 Jurden Bruce

Values come from environment variables with the defaults below.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, Optional

logger = logging.getLogger("synapse-memory.config")

# Relations that hold for at most one object at a time. A new object for
# one of these expires the previous fact instead of adding a second one.
DEFAULT_EXCLUSIVE_RELATIONS: FrozenSet[str] = frozenset({
    "LOCATED_IN",
    "IS_AT",
    "STATUS_IS",
    "CURRENT_ROLE",
    "LIVING_IN",
    "WORKING_ON_MAIN_PROJECT",
    "HEADQUARTERED_IN",
    "OWNED_BY",
    "CEO_IS",
    "HAS_TITLE",
    "EMPLOYED_BY",
    "ASSIGNED_TO",
    "CURRENTLY_READING",
})


def parse_relations(raw: Iterable[str]) -> FrozenSet[str]:
    """Normalize a collection of relation names to an upper-case set"""
    return frozenset(r.strip().upper() for r in raw if r and r.strip())


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class MemoryConfig:
    data_dir: Path = Path("memory_data")
    graph_file: str = "knowledge_graph.json"
    vector_file: str = "vectors.json"
    exclusive_relations: FrozenSet[str] = field(default_factory=lambda: DEFAULT_EXCLUSIVE_RELATIONS)
    similarity_threshold: float = 0.4
    reinforcement_increment: float = 0.1
    default_search_limit: int = 5
    default_query_depth: int = 1
    expired_edge_max_age_days: float = 7.0
    embedding_timeout: float = 10.0
    embedding_model: str = "all-mpnet-base-v2"
    cache_maxsize: int = 1000

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.exclusive_relations = parse_relations(self.exclusive_relations)

    @property
    def graph_path(self) -> Path:
        return self.data_dir / self.graph_file

    @property
    def vector_path(self) -> Path:
        return self.data_dir / self.vector_file

    @classmethod
    def from_env(cls, data_dir: Optional[Path] = None) -> "MemoryConfig":
        """Build a config from SYNAPSE_* environment variables"""
        relations_raw = os.getenv("SYNAPSE_EXCLUSIVE_RELATIONS")
        exclusive = (
            parse_relations(relations_raw.split(","))
            if relations_raw is not None
            else DEFAULT_EXCLUSIVE_RELATIONS
        )

        return cls(
            data_dir=Path(data_dir or os.getenv("SYNAPSE_DATA_DIR", "memory_data")),
            graph_file=os.getenv("SYNAPSE_GRAPH_FILE", "knowledge_graph.json"),
            vector_file=os.getenv("SYNAPSE_VECTOR_FILE", "vectors.json"),
            exclusive_relations=exclusive,
            similarity_threshold=_env_float("SYNAPSE_SIMILARITY_THRESHOLD", 0.4),
            reinforcement_increment=_env_float("SYNAPSE_REINFORCEMENT_INCREMENT", 0.1),
            default_search_limit=_env_int("SYNAPSE_SEARCH_LIMIT", 5),
            default_query_depth=_env_int("SYNAPSE_QUERY_DEPTH", 1),
            expired_edge_max_age_days=_env_float("SYNAPSE_EXPIRED_MAX_AGE_DAYS", 7.0),
            embedding_timeout=_env_float("SYNAPSE_EMBEDDING_TIMEOUT", 10.0),
            embedding_model=os.getenv("SYNAPSE_EMBEDDING_MODEL", "all-mpnet-base-v2"),
            cache_maxsize=_env_int("SYNAPSE_CACHE_MAXSIZE", 1000),
        )
