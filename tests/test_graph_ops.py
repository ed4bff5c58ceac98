"""Tests for the temporal knowledge graph."""

import json
import threading
from datetime import timedelta

import pytest

from synapse_memory.errors import StorageWriteError, ValidationFailure
from synapse_memory.graph_ops import GraphStore

HOUR_MS = 3600 * 1000
DAY_MS = 24 * HOUR_MS


def _edges(result, relation=None):
    return [
        (e["source"], e["relation"], e["target"])
        for e in result["edges"]
        if relation is None or e["relation"] == relation
    ]


class TestMerge:
    def test_new_triple_creates_nodes_and_edge(self, graph, clock):
        stats = graph.merge_triples([{"source": "Mac", "relation": "knows", "target": "Alice"}])

        assert stats == {"newNodes": 2, "newEdges": 1}
        result = graph.query_entity("mac")
        assert set(result["nodes"]) == {"mac", "alice"}
        edge = result["edges"][0]
        assert edge["relation"] == "KNOWS"
        assert edge["weight"] == 1.0
        assert edge["created"] == clock.now
        assert "expired" not in edge

    def test_labels_keep_original_casing(self, graph):
        graph.merge_triples([{"source": "  Project Alpha ", "relation": "uses", "target": "Python"}])

        node = graph.get_node("PROJECT ALPHA")
        assert node["id"] == "project alpha"
        assert node["label"] == "Project Alpha"
        assert node["type"] == "ENTITY"

    def test_node_type_tags(self, graph):
        graph.merge_triples([{
            "source": "Mac", "relation": "WORKS_ON", "target": "Synapse",
            "source_type": "PERSON", "target_type": "PROJECT",
        }])

        assert graph.get_node("mac")["type"] == "PERSON"
        assert graph.get_node("synapse")["type"] == "PROJECT"

    def test_reinforcement(self, graph, clock):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])
        clock.advance(5000)
        stats = graph.merge_triples([{"source": "a", "relation": "knows", "target": "b"}])

        assert stats == {"newNodes": 0, "newEdges": 0}
        edges = graph.query_entity("A")["edges"]
        assert len(edges) == 1
        assert edges[0]["weight"] == pytest.approx(1.1)
        assert edges[0]["lastSeen"] == clock.now
        assert graph.get_node("b")["lastSeen"] == clock.now

    def test_exclusive_relation_expires_previous_object(self, graph, clock):
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])
        clock.advance(1000)
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Y"}])

        current = graph.query_entity("A")
        assert _edges(current) == [("a", "LOCATED_IN", "y")]

        history = graph.query_entity("A", include_history=True)
        assert sorted(_edges(history)) == [("a", "LOCATED_IN", "x"), ("a", "LOCATED_IN", "y")]
        old = next(e for e in history["edges"] if e["target"] == "x")
        assert old["expired"] == clock.now

    def test_non_exclusive_relation_keeps_both(self, graph):
        graph.merge_triples([
            {"source": "A", "relation": "KNOWS", "target": "X"},
            {"source": "A", "relation": "KNOWS", "target": "Y"},
        ])

        assert sorted(_edges(graph.query_entity("A"))) == [("a", "KNOWS", "x"), ("a", "KNOWS", "y")]

    def test_self_loop(self, graph):
        stats = graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "a"}])
        assert stats == {"newNodes": 1, "newEdges": 1}

        stats = graph.merge_triples([{"source": "a", "relation": "KNOWS", "target": "A"}])
        assert stats == {"newNodes": 0, "newEdges": 0}

        result = graph.query_entity("A", depth=2)
        assert set(result["nodes"]) == {"a"}
        assert len(result["edges"]) == 1
        assert result["edges"][0]["weight"] == pytest.approx(1.1)

    def test_restating_expired_fact_creates_new_edge(self, graph):
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Y"}])
        stats = graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])

        assert stats["newEdges"] == 1
        assert _edges(graph.query_entity("A")) == [("a", "LOCATED_IN", "x")]
        assert len(graph.query_entity("A", include_history=True)["edges"]) == 3

    def test_custom_exclusive_relations(self, config, clock):
        store = GraphStore(config.graph_path, exclusive_relations=["favorite_color"], clock=clock)
        store.merge_triples([{"source": "A", "relation": "FAVORITE_COLOR", "target": "red"}])
        store.merge_triples([{"source": "A", "relation": "FAVORITE_COLOR", "target": "blue"}])
        store.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])
        store.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Y"}])

        current = _edges(store.query_entity("A"))
        assert ("a", "FAVORITE_COLOR", "red") not in current
        assert ("a", "LOCATED_IN", "x") in current

    def test_malformed_triple_rejects_whole_batch(self, graph):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])
        before = graph.path.read_text()

        with pytest.raises(ValidationFailure) as exc_info:
            graph.merge_triples([
                {"source": "C", "relation": "KNOWS", "target": "D"},
                {"source": "E", "relation": "", "target": "F"},
            ])

        assert exc_info.value.index == 1
        assert exc_info.value.field == "relation"
        assert graph.path.read_text() == before
        assert graph.get_node("c") is None

    @pytest.mark.parametrize("bad", [None, "A KNOWS B", {"source": "A"}])
    def test_rejects_non_list_batches(self, graph, bad):
        with pytest.raises(ValidationFailure):
            graph.merge_triples(bad)

    def test_empty_batch_is_a_no_op(self, graph):
        assert graph.merge_triples([]) == {"newNodes": 0, "newEdges": 0}
        assert not graph.path.exists()

    def test_failed_write_leaves_snapshot(self, graph, monkeypatch):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])

        def broken_save(data):
            raise StorageWriteError(graph.path, "disk full")

        monkeypatch.setattr(graph._file, "save", broken_save)
        with pytest.raises(StorageWriteError):
            graph.merge_triples([{"source": "C", "relation": "KNOWS", "target": "D"}])

        assert graph.get_node("c") is None
        assert graph.stats()["edges"] == 1

    def test_concurrent_merges_lose_nothing(self, graph):
        def worker(n):
            for i in range(10):
                graph.merge_triples([{"source": f"worker{n}", "relation": "HAS_ITEM", "target": f"item{n}-{i}"}])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert graph.stats()["edges"] == 80
        reloaded = GraphStore(graph.path)
        assert reloaded.stats()["edges"] == 80


class TestQuery:
    @pytest.fixture
    def chain(self, graph):
        graph.merge_triples([
            {"source": "A", "relation": "NEXT", "target": "B"},
            {"source": "B", "relation": "NEXT", "target": "C"},
            {"source": "C", "relation": "NEXT", "target": "D"},
        ])
        return graph

    def test_depth_bound(self, chain):
        result = chain.query_entity("A", depth=2)
        assert set(result["nodes"]) == {"a", "b", "c"}
        assert sorted(_edges(result)) == [("a", "NEXT", "b"), ("b", "NEXT", "c")]

    def test_depth_zero_returns_root_only(self, chain):
        result = chain.query_entity("A", depth=0)
        assert set(result["nodes"]) == {"a"}
        assert result["edges"] == []

    def test_traverses_incoming_edges(self, chain):
        result = chain.query_entity("C", depth=1)
        assert set(result["nodes"]) == {"b", "c", "d"}

    def test_edges_reported_once(self, graph):
        graph.merge_triples([
            {"source": "A", "relation": "KNOWS", "target": "B"},
            {"source": "B", "relation": "KNOWS", "target": "A"},
        ])
        result = graph.query_entity("A", depth=3)
        assert len(result["edges"]) == 2

    def test_unknown_root(self, graph):
        assert graph.query_entity("nobody") == {"nodes": {}, "edges": []}

    def test_negative_depth_rejected(self, graph):
        with pytest.raises(ValidationFailure):
            graph.query_entity("A", depth=-1)

    def test_expired_edges_not_followed_without_history(self, graph):
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])
        graph.merge_triples([{"source": "X", "relation": "PART_OF", "target": "Z"}])
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Y"}])

        assert "z" not in graph.query_entity("A", depth=2)["nodes"]
        assert "z" in graph.query_entity("A", depth=2, include_history=True)["nodes"]


class TestExport:
    def test_export_ages_out_expired_edges(self, graph, clock):
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Old"}])
        clock.advance(60 * 1000)
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Recent"}])
        clock.advance(8 * DAY_MS - HOUR_MS)
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Now"}])
        clock.advance(HOUR_MS)

        # "old" expired 8 days ago, "recent" one hour ago
        result = graph.export_for_visualization()
        assert {e["target"] for e in result["edges"]} == {"recent", "now"}
        assert set(result["nodes"]) == {"a", "recent", "now"}

        clock.advance(7 * DAY_MS)
        result = graph.export_for_visualization()
        assert {e["target"] for e in result["edges"]} == {"now"}
        assert set(result["nodes"]) == {"a", "now"}

    def test_export_custom_age(self, graph, clock):
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])
        graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Y"}])
        clock.advance(2 * HOUR_MS)

        assert len(graph.export_for_visualization(timedelta(hours=3))["edges"]) == 2
        assert len(graph.export_for_visualization(3600)["edges"]) == 1


class TestPersistence:
    def test_file_layout(self, graph, clock):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])

        data = json.loads(graph.path.read_text())
        assert set(data) == {"nodes", "edges"}
        assert data["nodes"]["a"] == {
            "id": "a", "label": "A", "type": "ENTITY", "created": clock.now, "lastSeen": clock.now,
        }
        assert data["edges"] == [{
            "source": "a", "target": "b", "relation": "KNOWS", "weight": 1.0, "created": clock.now,
        }]

    def test_reload_from_disk(self, graph, clock):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])

        reloaded = GraphStore(graph.path, clock=clock)
        assert _edges(reloaded.query_entity("a")) == [("a", "KNOWS", "b")]

    def test_corrupt_file_degrades_to_empty(self, graph):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])
        graph.path.write_text("{ this is not json")

        assert graph.query_entity("A") == {"nodes": {}, "edges": []}
        assert graph.error_log
        assert graph.error_log[-1]["error_type"] == "StorageCorruption"

        graph.merge_triples([{"source": "C", "relation": "KNOWS", "target": "D"}])
        assert set(json.loads(graph.path.read_text())["nodes"]) == {"c", "d"}

    def test_wrong_shape_degrades_to_empty(self, config):
        config.data_dir.mkdir(parents=True)
        config.graph_path.write_text(json.dumps([1, 2, 3]))

        store = GraphStore(config.graph_path)
        assert store.stats()["nodes"] == 0

    def test_picks_up_external_changes(self, graph, clock):
        other = GraphStore(graph.path, clock=clock)
        other.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])

        assert graph.get_node("a") is not None

    def test_wipe(self, graph):
        graph.merge_triples([{"source": "A", "relation": "KNOWS", "target": "B"}])
        graph.wipe()

        assert graph.stats()["nodes"] == 0
        assert json.loads(graph.path.read_text()) == {"nodes": {}, "edges": []}


def test_format_edges():
    edges = [
        {"source": "a", "relation": "LOCATED_IN", "target": "x", "expired": 1},
        {"source": "a", "relation": "LOCATED_IN", "target": "y"},
    ]
    assert GraphStore.format_edges(edges) == (
        "(a) --[LOCATED_IN]--> (x) [expired]\n(a) --[LOCATED_IN]--> (y)"
    )


def test_stats_counts(graph):
    graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "X"}])
    graph.merge_triples([{"source": "A", "relation": "LOCATED_IN", "target": "Y"}])

    stats = graph.stats()
    assert stats["nodes"] == 3
    assert stats["active_edges"] == 1
    assert stats["expired_edges"] == 1
    assert stats["relations"] == {"LOCATED_IN": 1}
