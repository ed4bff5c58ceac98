"""Tests for the MCP tool surface."""

import asyncio
import json

from synapse_memory.mcp_tools import get_tool_definitions, handle_tool_call


def call(gateway, name, arguments=None):
    contents = asyncio.run(handle_tool_call(name, arguments or {}, gateway))
    assert len(contents) == 1
    return json.loads(contents[0].text)


def test_tool_names():
    names = {tool.name for tool in get_tool_definitions()}
    assert names == {
        "add_graph_relations",
        "query_graph_knowledge",
        "export_graph",
        "upsert_vector",
        "search_vectors",
        "store_memory",
        "retrieve_memory",
        "wipe_memory",
        "get_statistics",
    }


def test_add_and_query_relations(gateway):
    result = call(gateway, "add_graph_relations", {"triples": [
        {"source": "Mac", "relation": "LOCATED_IN", "target": "London"},
        {"source": "Mac", "relation": "LOCATED_IN", "target": "Tokyo"},
    ]})
    assert result == {"success": True, "stats": {"newNodes": 3, "newEdges": 2}}

    current = call(gateway, "query_graph_knowledge", {"entity": "Mac"})
    assert current["summary"] == "(mac) --[LOCATED_IN]--> (tokyo)"

    history = call(gateway, "query_graph_knowledge", {"entity": "Mac", "include_history": True})
    assert "(mac) --[LOCATED_IN]--> (london) [expired]" in history["summary"]


def test_query_unknown_entity(gateway):
    result = call(gateway, "query_graph_knowledge", {"entity": "nobody"})
    assert result["nodes"] == {}
    assert "No knowledge found" in result["summary"]


def test_malformed_triple_reports_validation_error(gateway):
    result = call(gateway, "add_graph_relations", {"triples": [{"source": "A", "target": "B"}]})

    assert result["type"] == "ValidationFailure"
    assert "relation" in result["error"]
    assert gateway.graph.stats()["nodes"] == 0


def test_export_graph(gateway):
    call(gateway, "add_graph_relations", {"triples": [{"source": "A", "relation": "KNOWS", "target": "B"}]})

    result = call(gateway, "export_graph", {"max_age_hours": 24})
    assert set(result["nodes"]) == {"a", "b"}
    assert len(result["edges"]) == 1


def test_vector_tools(gateway):
    assert call(gateway, "upsert_vector", {"id": "r1", "content": "tea", "embedding": [1.0, 0.0]}) == {"success": True}

    result = call(gateway, "search_vectors", {"embedding": [1.0, 0.0]})
    assert result["count"] == 1
    assert result["results"][0]["id"] == "r1"

    mismatch = call(gateway, "upsert_vector", {"id": "r2", "content": "x", "embedding": [1.0]})
    assert mismatch["type"] == "DimensionMismatch"


def test_store_and_retrieve_memory(gateway):
    stored = call(gateway, "store_memory", {"content": "deploys happen on fridays"})
    assert stored["success"] is True

    result = call(gateway, "retrieve_memory", {"query": "deploys happen on fridays"})
    assert result["results"][0]["id"] == stored["id"]


def test_wipe_requires_confirmation(gateway):
    call(gateway, "add_graph_relations", {"triples": [{"source": "A", "relation": "KNOWS", "target": "B"}]})

    refused = call(gateway, "wipe_memory", {})
    assert refused["success"] is False
    assert gateway.graph.stats()["nodes"] == 2

    assert call(gateway, "wipe_memory", {"confirm": True}) == {"success": True}
    assert gateway.graph.stats()["nodes"] == 0


def test_statistics_tool(gateway):
    result = call(gateway, "get_statistics")
    assert result["graph"]["nodes"] == 0
    assert result["vectors"]["records"] == 0


def test_unknown_tool(gateway):
    assert call(gateway, "no_such_tool") == {"error": "Unknown tool: no_such_tool"}
