"""
Temporal knowledge graph for Synapse Memory System
Copyright 2025 Jurden Bruce

Facts are (source, relation, target) edges between entity nodes. Merging a
fact either reinforces the matching active edge or appends a new one; for
exclusive relations the previous object is expired rather than replaced, so
the graph keeps its full history.

Concurrency: every mutation runs under one lock, on a scratch copy of the
published snapshot, and the copy is only published after it has been written
to disk. Readers use the published snapshot without taking the lock.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from .config import DEFAULT_EXCLUSIVE_RELATIONS, parse_relations
from .errors import ValidationFailure
from .models import DEFAULT_NODE_TYPE, Edge, Node, Triple
from .storage.json_store import JsonFileStore
from .utils import normalize_entity, normalize_relation, now_ms, to_milliseconds

logger = logging.getLogger("synapse-memory.graph")

DEFAULT_EXPIRED_MAX_AGE = timedelta(days=7)


def empty_graph() -> Dict[str, Any]:
    return {"nodes": {}, "edges": []}


@dataclass
class GraphState:
    """Node map and edge list of one graph snapshot"""
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)

    def copy(self) -> "GraphState":
        return GraphState(
            nodes={k: replace(n) for k, n in self.nodes.items()},
            edges=[replace(e) for e in self.edges],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": {k: n.to_dict() for k, n in self.nodes.items()},
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphState":
        if not isinstance(data, dict):
            raise TypeError(f"graph root must be an object, got {type(data).__name__}")
        raw_nodes = data.get("nodes", {})
        raw_edges = data.get("edges", [])
        if not isinstance(raw_nodes, dict) or not isinstance(raw_edges, list):
            raise TypeError("graph must hold a 'nodes' object and an 'edges' list")

        nodes = {}
        for key, value in raw_nodes.items():
            node = Node.from_dict(value)
            nodes[key] = node
        edges = [Edge.from_dict(e) for e in raw_edges]
        return cls(nodes=nodes, edges=edges)


class GraphStore:
    """File-backed temporal knowledge graph"""

    def __init__(
        self,
        path: Path,
        exclusive_relations: Optional[Iterable[str]] = None,
        reinforcement_increment: float = 0.1,
        clock: Optional[Callable[[], int]] = None,
        error_log: Optional[List[Dict[str, Any]]] = None,
    ):
        """
        Args:
            path: JSON file holding the graph
            exclusive_relations: Relations allowing one active object per source
            reinforcement_increment: Weight added when a known fact is merged again
            clock: Returns "now" in epoch milliseconds
            error_log: Shared error log list
        """
        self.exclusive_relations = parse_relations(
            DEFAULT_EXCLUSIVE_RELATIONS if exclusive_relations is None else exclusive_relations
        )
        self.reinforcement_increment = reinforcement_increment
        self.clock = clock or now_ms
        self.error_log = error_log if error_log is not None else []

        self._lock = threading.Lock()
        self._file = JsonFileStore(path, empty_graph, self.error_log)
        self._snapshot: GraphState = self._file.load_or_empty(GraphState.from_dict)
        logger.info(
            f"Graph loaded from {self._file.path}: "
            f"{len(self._snapshot.nodes)} nodes, {len(self._snapshot.edges)} edges"
        )

    @property
    def path(self) -> Path:
        return self._file.path

    def _reload_if_changed(self):
        """Pick up a file changed outside this process (caller holds the lock)"""
        if self._file.has_changed():
            logger.info(f"Graph file {self._file.path} changed on disk, reloading")
            self._snapshot = self._file.load_or_empty(GraphState.from_dict)

    def _current(self) -> GraphState:
        if self._file.has_changed():
            with self._lock:
                self._reload_if_changed()
        return self._snapshot

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def merge_triples(self, triples: Iterable[Any]) -> Dict[str, int]:
        """Merge a batch of facts as one atomic unit

        Every triple is validated before anything is applied; a malformed
        triple rejects the whole batch. The batch is written once.

        Returns:
            {"newNodes": n, "newEdges": m} counting created (not reinforced) items

        Raises:
            ValidationFailure: a triple is malformed (store untouched)
            StorageWriteError: the graph could not be persisted (store untouched)
        """
        if triples is None or isinstance(triples, (str, bytes, dict)):
            raise ValidationFailure("triples must be a list of objects", field="triples")
        batch = [Triple.from_dict(t, index=i) for i, t in enumerate(triples)]
        if not batch:
            return {"newNodes": 0, "newEdges": 0}

        with self._lock:
            self._reload_if_changed()
            state = self._snapshot.copy()
            now = self.clock()
            new_nodes = 0
            new_edges = 0

            for triple in batch:
                src_id = normalize_entity(triple.source)
                tgt_id = normalize_entity(triple.target)
                relation = normalize_relation(triple.relation)

                if self._touch_node(state, src_id, triple.source, triple.source_type, now):
                    new_nodes += 1
                if self._touch_node(state, tgt_id, triple.target, triple.target_type, now):
                    new_nodes += 1

                if relation in self.exclusive_relations:
                    for edge in state.edges:
                        if (edge.source == src_id and edge.relation == relation
                                and edge.target != tgt_id and edge.is_active):
                            logger.info(
                                f"[GRAPH] Expiring old edge: {edge.source} --[{edge.relation}]--> {edge.target}"
                            )
                            edge.expired = now

                existing = self._find_active_edge(state, src_id, tgt_id, relation)
                if existing is None:
                    state.edges.append(Edge(
                        source=src_id,
                        target=tgt_id,
                        relation=relation,
                        weight=1.0,
                        created=now,
                    ))
                    new_edges += 1
                else:
                    existing.weight = round(existing.weight + self.reinforcement_increment, 10)
                    existing.last_seen = now

            self._file.save(state.to_dict())
            self._snapshot = state

        logger.info(f"[GRAPH] Merged {new_nodes} nodes, {new_edges} edges from {len(batch)} triples")
        return {"newNodes": new_nodes, "newEdges": new_edges}

    @staticmethod
    def _touch_node(state: GraphState, node_id: str, label: str, node_type: Optional[str], now: int) -> bool:
        """Create the node if missing, else refresh lastSeen. True when created."""
        node = state.nodes.get(node_id)
        if node is None:
            state.nodes[node_id] = Node(
                id=node_id,
                label=label,
                type=node_type or DEFAULT_NODE_TYPE,
                created=now,
                last_seen=now,
            )
            return True
        node.last_seen = now
        return False

    @staticmethod
    def _find_active_edge(state: GraphState, source: str, target: str, relation: str) -> Optional[Edge]:
        for edge in state.edges:
            if (edge.source == source and edge.target == target
                    and edge.relation == relation and edge.is_active):
                return edge
        return None

    def wipe(self):
        """Replace the graph with an empty one and persist it"""
        with self._lock:
            state = GraphState()
            self._file.save(state.to_dict())
            self._snapshot = state
        logger.info("[GRAPH] Wiped")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_entity(self, entity: str, depth: int = 1, include_history: bool = False) -> Dict[str, Any]:
        """Breadth-first neighbourhood of an entity

        Args:
            entity: Entity label (normalized before lookup)
            depth: Maximum hops expanded from the root; 0 returns the root alone
            include_history: Also follow expired edges

        Returns:
            {"nodes": {id: node}, "edges": [edge, ...]} - empty when the root is unknown
        """
        if not isinstance(entity, str) or not entity.strip():
            raise ValidationFailure("'entity' must be a non-empty string", field="entity")
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
            raise ValidationFailure("'depth' must be a non-negative integer", field="depth")

        state = self._current()
        root_id = normalize_entity(entity)
        root = state.nodes.get(root_id)
        if root is None:
            return {"nodes": {}, "edges": []}

        nodes: Dict[str, Node] = {root_id: root}
        edges: List[Edge] = []
        seen_edges: Set[int] = set()
        visited = {root_id}
        queue = deque([(root_id, 0)])

        while queue:
            node_id, level = queue.popleft()
            if level >= depth:
                continue

            for edge in state.edges:
                if edge.source != node_id and edge.target != node_id:
                    continue
                if not include_history and not edge.is_active:
                    continue

                if id(edge) not in seen_edges:
                    seen_edges.add(id(edge))
                    edges.append(edge)

                neighbor_id = edge.target if edge.source == node_id else edge.source
                if neighbor_id not in visited:
                    visited.add(neighbor_id)
                    neighbor = state.nodes.get(neighbor_id)
                    if neighbor is not None:
                        nodes[neighbor_id] = neighbor
                        queue.append((neighbor_id, level + 1))

        return {
            "nodes": {k: n.to_dict() for k, n in nodes.items()},
            "edges": [e.to_dict() for e in edges],
        }

    def export_for_visualization(self, max_age_for_expired: Union[timedelta, int, float, None] = None) -> Dict[str, Any]:
        """Active edges plus recently expired ones, and the nodes they touch

        Args:
            max_age_for_expired: How long expired edges stay visible
                (timedelta or seconds, default 7 days)
        """
        if max_age_for_expired is None:
            max_age_for_expired = DEFAULT_EXPIRED_MAX_AGE
        cutoff = self.clock() - to_milliseconds(max_age_for_expired)

        state = self._current()
        edges = [e for e in state.edges if e.expired is None or e.expired > cutoff]

        referenced = set()
        for edge in edges:
            referenced.add(edge.source)
            referenced.add(edge.target)

        nodes = {k: n.to_dict() for k, n in state.nodes.items() if k in referenced}
        return {"nodes": nodes, "edges": [e.to_dict() for e in edges]}

    def get_node(self, entity: str) -> Optional[Dict[str, Any]]:
        node = self._current().nodes.get(normalize_entity(entity))
        return node.to_dict() if node else None

    def stats(self) -> Dict[str, Any]:
        state = self._current()
        active = [e for e in state.edges if e.is_active]
        return {
            "nodes": len(state.nodes),
            "edges": len(state.edges),
            "active_edges": len(active),
            "expired_edges": len(state.edges) - len(active),
            "relations": dict(Counter(e.relation for e in active)),
        }

    @staticmethod
    def format_edges(edges: List[Dict[str, Any]]) -> str:
        """Render edges one per line as ``(source) --[RELATION]--> (target)``"""
        lines = []
        for edge in edges:
            line = f"({edge['source']}) --[{edge['relation']}]--> ({edge['target']})"
            if edge.get("expired"):
                line += " [expired]"
            lines.append(line)
        return "\n".join(lines)
