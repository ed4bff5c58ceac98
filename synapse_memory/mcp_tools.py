"""
MCP Tool Definitions and Handlers for Synapse Memory System
Copyright 2025 Jurden Bruce

All tool responses return JSON for AI consumption, not human-formatted text.
"""

import json
import logging
from typing import Any, Dict, List

from mcp.types import TextContent, Tool

from .errors import DimensionMismatch, ValidationFailure
from .graph_ops import GraphStore
from .utils import DateTimeEncoder

logger = logging.getLogger("synapse-memory.mcp-tools")

_TRIPLE_SCHEMA = {
    "type": "object",
    "properties": {
        "source": {"type": "string", "description": "Subject (e.g. \"Project Alpha\")"},
        "relation": {"type": "string", "description": "Predicate (e.g. \"DEPENDS_ON\", \"LOCATED_IN\")"},
        "target": {"type": "string", "description": "Object (e.g. \"Python\")"},
        "source_type": {"type": "string", "description": "Type tag for a newly created source node (default ENTITY)"},
        "target_type": {"type": "string", "description": "Type tag for a newly created target node (default ENTITY)"},
    },
    "required": ["source", "relation", "target"],
}


def get_tool_definitions() -> List[Tool]:
    """Return list of available MCP tools"""
    return [
        Tool(
            name="add_graph_relations",
            description="""Add structural knowledge to the knowledge graph as (source, relation, target) triples.

Time is handled automatically: for exclusive relations (LOCATED_IN, EMPLOYED_BY, CURRENT_ROLE, ...)
a new object archives the previous one with an expiry timestamp, so "Mac LOCATED_IN Tokyo" retires
"Mac LOCATED_IN London" without deleting it. Re-stating a known fact reinforces it.
The whole batch is rejected if any triple is malformed.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "triples": {"type": "array", "items": _TRIPLE_SCHEMA, "description": "Relations to add"},
                },
                "required": ["triples"],
            },
        ),
        Tool(
            name="query_graph_knowledge",
            description="Traverse the knowledge graph outward from an entity (breadth-first, bounded by depth). Returns current facts, or full history when include_history is true.",
            inputSchema={
                "type": "object",
                "properties": {
                    "entity": {"type": "string", "description": "Entity to start from (case-insensitive)"},
                    "depth": {"type": "integer", "description": "Max relation hops (default 1)", "minimum": 0},
                    "include_history": {"type": "boolean", "description": "Include expired facts", "default": False},
                },
                "required": ["entity"],
            },
        ),
        Tool(
            name="export_graph",
            description="Export the graph for visualization: all active facts plus facts expired within max_age_hours (default one week).",
            inputSchema={
                "type": "object",
                "properties": {
                    "max_age_hours": {"type": "number", "description": "How long expired facts stay visible", "minimum": 0},
                },
            },
        ),
        Tool(
            name="upsert_vector",
            description="Store (or replace by id) a text fragment with a precomputed embedding vector",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Record ID (replaces an existing record with the same ID)"},
                    "content": {"type": "string", "description": "Source text"},
                    "embedding": {"type": "array", "items": {"type": "number"}, "description": "Embedding vector"},
                    "metadata": {"type": "object", "description": "Additional metadata", "default": {}},
                },
                "required": ["id", "content", "embedding"],
            },
        ),
        Tool(
            name="search_vectors",
            description="Rank stored fragments by cosine similarity to a precomputed query embedding",
            inputSchema={
                "type": "object",
                "properties": {
                    "embedding": {"type": "array", "items": {"type": "number"}, "description": "Query embedding"},
                    "limit": {"type": "integer", "description": "Max results", "default": 5},
                },
                "required": ["embedding"],
            },
        ),
        Tool(
            name="store_memory",
            description="Store a fact or preference as semantic memory (embedded automatically). Nothing is stored if no embedding can be generated.",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {"type": "string", "description": "Content to store"},
                    "id": {"type": "string", "description": "Optional record ID to replace"},
                    "metadata": {"type": "object", "description": "Additional metadata", "default": {}},
                },
                "required": ["content"],
            },
        ),
        Tool(
            name="retrieve_memory",
            description="Semantic search over stored memories by natural-language query; falls back to keyword matching when no embedding or no semantic match is available",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query"},
                    "limit": {"type": "integer", "description": "Max results", "default": 5},
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="wipe_memory",
            description="Factory reset: replace the knowledge graph and the vector store with empty ones. Requires confirm=true.",
            inputSchema={
                "type": "object",
                "properties": {
                    "confirm": {"type": "boolean", "description": "Must be true"},
                },
                "required": ["confirm"],
            },
        ),
        Tool(
            name="get_statistics",
            description="Get memory system statistics (graph size, vector count, backends, recent errors)",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def _json_response(result: Any) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2, cls=DateTimeEncoder))]


async def handle_tool_call(name: str, arguments: Dict[str, Any], gateway) -> List[TextContent]:
    """
    Handle MCP tool calls with JSON responses

    Args:
        name: Tool name
        arguments: Tool arguments
        gateway: MemoryGateway instance

    Returns:
        List of TextContent with JSON-encoded responses
    """
    arguments = arguments or {}
    try:
        if name == "add_graph_relations":
            stats = await gateway.merge_triples(arguments.get("triples"))
            return _json_response({"success": True, "stats": stats})

        elif name == "query_graph_knowledge":
            entity = arguments.get("entity")
            result = await gateway.query_entity(
                entity,
                depth=arguments.get("depth"),
                include_history=bool(arguments.get("include_history", False)),
            )
            if not result["nodes"]:
                result["summary"] = f"No knowledge found for entity '{entity}'."
            else:
                result["summary"] = GraphStore.format_edges(result["edges"])
            return _json_response(result)

        elif name == "export_graph":
            max_age_hours = arguments.get("max_age_hours")
            max_age = None if max_age_hours is None else float(max_age_hours) * 3600
            return _json_response(await gateway.export_graph(max_age))

        elif name == "upsert_vector":
            result = await gateway.upsert_vector(
                arguments.get("id"),
                arguments.get("content"),
                arguments.get("embedding"),
                arguments.get("metadata"),
            )
            return _json_response(result)

        elif name == "search_vectors":
            results = await gateway.search_vectors(arguments.get("embedding"), limit=arguments.get("limit"))
            return _json_response({"results": results, "count": len(results)})

        elif name == "store_memory":
            result = await gateway.remember(
                arguments.get("content"),
                record_id=arguments.get("id"),
                metadata=arguments.get("metadata"),
            )
            return _json_response(result)

        elif name == "retrieve_memory":
            results = await gateway.recall(arguments.get("query"), limit=arguments.get("limit"))
            return _json_response({"results": results, "count": len(results)})

        elif name == "wipe_memory":
            if arguments.get("confirm") is not True:
                return _json_response({"success": False, "error": "wipe_memory requires confirm=true"})
            return _json_response(await gateway.wipe())

        elif name == "get_statistics":
            return _json_response(gateway.get_statistics())

        else:
            return _json_response({"error": f"Unknown tool: {name}"})

    except (ValidationFailure, DimensionMismatch) as e:
        logger.warning(f"Rejected {name}: {e}")
        return _json_response({"error": str(e), "tool": name, "type": type(e).__name__})

    except Exception as e:
        logger.error(f"Tool execution error: {name}: {e}", exc_info=True)
        return _json_response({
            "error": str(e),
            "tool": name,
            "type": type(e).__name__,
        })
