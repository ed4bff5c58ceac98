#!/usr/bin/env python3
"""
Synapse Memory Web Server
Copyright 2025 Jurden Bruce

FastAPI server exposing the memory gateway over HTTP so a browser-side agent
can reach the same graph and vector files as the MCP server.
"""

import logging
import os
import sys
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .config import MemoryConfig
from .errors import DimensionMismatch, ValidationFailure
from .memory_store import MemoryGateway

logger = logging.getLogger("synapse-memory.web")


# Pydantic models for request/response
class TripleModel(BaseModel):
    source: str = Field(..., description="Subject entity")
    relation: str = Field(..., description="Predicate, e.g. LOCATED_IN")
    target: str = Field(..., description="Object entity")
    source_type: Optional[str] = Field(default=None, description="Type tag for a new source node")
    target_type: Optional[str] = Field(default=None, description="Type tag for a new target node")


class MergeRequest(BaseModel):
    triples: List[TripleModel] = Field(..., description="Facts to merge as one batch")


class QueryRequest(BaseModel):
    entity: str = Field(..., description="Entity to start the traversal from")
    depth: Optional[int] = Field(default=None, ge=0, description="Max relation hops")
    include_history: bool = Field(default=False, description="Include expired facts")


class VectorSaveRequest(BaseModel):
    id: str = Field(..., description="Record ID")
    content: str = Field(..., description="Source text")
    embedding: List[float] = Field(..., description="Embedding vector")
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Optional metadata")


class VectorSearchRequest(BaseModel):
    embedding: List[float] = Field(..., description="Query embedding")
    limit: Optional[int] = Field(default=None, ge=0, description="Max results")


class RememberRequest(BaseModel):
    content: str = Field(..., description="Text to embed and store")
    id: Optional[str] = Field(default=None, description="Record ID to replace")
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Optional metadata")


class RecallRequest(BaseModel):
    query: str = Field(..., description="Natural-language search query")
    limit: Optional[int] = Field(default=None, ge=0, description="Max results")


def get_gateway(request: Request) -> MemoryGateway:
    return request.app.state.gateway


def _server_error(operation: str, e: Exception) -> HTTPException:
    logger.error(f"{operation} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


def create_app(gateway: Optional[MemoryGateway] = None) -> FastAPI:
    """Build the FastAPI app around *gateway* (created from the environment if omitted)"""
    app = FastAPI(
        title="Synapse Memory API",
        description="HTTP interface for the Synapse knowledge graph and vector memory",
        version=__version__,
    )
    app.state.gateway = gateway or MemoryGateway(MemoryConfig.from_env())

    # Enable CORS for localhost access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationFailure)
    @app.exception_handler(DimensionMismatch)
    async def rejected_input(request: Request, exc: Exception):
        logger.warning(f"Rejected {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc), "type": type(exc).__name__})

    @app.post("/api/memory/graph/merge")
    async def merge_graph(request: MergeRequest, gw: MemoryGateway = Depends(get_gateway)):
        """Merge a batch of triples into the knowledge graph."""
        triples = [t.model_dump(exclude_none=True) for t in request.triples]
        try:
            stats = await gw.merge_triples(triples)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("graph merge", e)
        return {"success": True, "stats": stats}

    @app.post("/api/memory/graph/query")
    async def query_graph(request: QueryRequest, gw: MemoryGateway = Depends(get_gateway)):
        """Neighbourhood of an entity."""
        try:
            return await gw.query_entity(request.entity, request.depth, request.include_history)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("graph query", e)

    @app.get("/api/memory/graph/visualize")
    async def visualize_graph(
        max_age_hours: Optional[float] = Query(None, ge=0, description="How long expired facts stay visible"),
        gw: MemoryGateway = Depends(get_gateway),
    ):
        """Graph export for visualization."""
        max_age = None if max_age_hours is None else max_age_hours * 3600
        try:
            return await gw.export_graph(max_age)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("graph export", e)

    @app.post("/api/memory/vector-save")
    async def save_vector(request: VectorSaveRequest, gw: MemoryGateway = Depends(get_gateway)):
        """Insert or replace an embedded text fragment."""
        try:
            return await gw.upsert_vector(request.id, request.content, request.embedding, request.metadata)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("vector save", e)

    @app.post("/api/memory/vector-search")
    async def search_vectors(request: VectorSearchRequest, gw: MemoryGateway = Depends(get_gateway)):
        """Similarity search with a precomputed query embedding."""
        try:
            results = await gw.search_vectors(request.embedding, limit=request.limit)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("vector search", e)
        return {"results": results, "count": len(results)}

    @app.post("/api/memory/remember")
    async def remember(request: RememberRequest, gw: MemoryGateway = Depends(get_gateway)):
        """Embed and store a text fragment."""
        try:
            return await gw.remember(request.content, record_id=request.id, metadata=request.metadata)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("remember", e)

    @app.post("/api/memory/recall")
    async def recall(request: RecallRequest, gw: MemoryGateway = Depends(get_gateway)):
        """Semantic search by text, with keyword fallback."""
        try:
            results = await gw.recall(request.query, limit=request.limit)
        except (ValidationFailure, DimensionMismatch):
            raise
        except Exception as e:
            raise _server_error("recall", e)
        return {"results": results, "count": len(results)}

    @app.post("/api/memory/wipe")
    async def wipe(gw: MemoryGateway = Depends(get_gateway)):
        """Factory reset of both stores."""
        try:
            return await gw.wipe()
        except Exception as e:
            raise _server_error("wipe", e)

    @app.get("/api/memory/stats")
    async def stats(gw: MemoryGateway = Depends(get_gateway)):
        """Graph, vector and backend statistics."""
        try:
            return gw.get_statistics()
        except Exception as e:
            raise _server_error("stats", e)

    return app


def main():
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
    )
    for logger_name in ["sentence_transformers", "urllib3", "httpx"]:
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    host = os.getenv("SYNAPSE_HTTP_HOST", "127.0.0.1")
    port = int(os.getenv("SYNAPSE_HTTP_PORT", "8766"))

    print("=" * 80)
    print("Synapse Memory Web Server")
    print("=" * 80)
    print(f"  API:       http://{host}:{port}/api/memory")
    print(f"  API docs:  http://{host}:{port}/docs")
    print("=" * 80)

    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
