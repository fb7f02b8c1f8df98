"""
FastAPI server for doc-search.

Exposes document upload, passage search and index maintenance as a small
JSON API. Text extraction happens before documents reach this server.
"""

from pathlib import Path

from fastapi import BackgroundTasks, FastAPI
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from .config import resolve_db_path
from .service import DocumentSearchService, open_service

app = FastAPI(title="doc-search", description="Hybrid passage search over documents")

MIN_CONTENT_LENGTH = 10

_services: dict[str, DocumentSearchService] = {}


def get_service(db_path: str | None = None) -> DocumentSearchService:
    """Return the shared service for a database path, creating it if needed."""
    resolved = resolve_db_path(db_path)
    if resolved not in _services:
        _services[resolved] = open_service(resolved)
    return _services[resolved]


def reset_services() -> None:
    """Close and forget all open services."""
    for service in _services.values():
        service.close()
    _services.clear()


class DocumentRequest(BaseModel):
    """Request model for adding an already-extracted document."""

    filename: str = Field(min_length=1)
    content: str
    db_path: str | None = None


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str
    limit: int = Field(default=10, ge=1, le=100)
    per_document: bool = False
    db_path: str | None = None


class ReindexRequest(BaseModel):
    """Request model for re-embedding stored chunks."""

    force: bool = False
    db_path: str | None = None


@app.get("/api/health")
async def health(db_path: str | None = None):
    """Report liveness and whether semantic search is available."""
    service = get_service(db_path)
    return {
        "status": "ok",
        "embeddings_configured": service.embeddings_configured,
    }


@app.post("/api/documents")
async def add_document(request: DocumentRequest, background_tasks: BackgroundTasks):
    """Store a document; its chunks are embedded after the response is sent."""
    try:
        if len(request.content.strip()) < MIN_CONTENT_LENGTH:
            return JSONResponse(
                {"error": "Document contains insufficient text content."},
                status_code=400,
            )

        service = get_service(request.db_path)
        result = service.add_document(
            Path(request.filename).name, request.content, embed=False
        )
        if not result.indexed:
            return JSONResponse(
                {"error": "Document contains no indexable text."}, status_code=400
            )
        if service.embeddings_configured:
            background_tasks.add_task(service.embed_chunks, list(result.chunks))

        return {
            "doc_id": result.doc_id,
            "filename": result.filename,
            "chunks_written": result.chunks_written,
            "embedding_scheduled": service.embeddings_configured,
        }
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except Exception as exc:
        logger.exception("Failed to store document")
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.get("/api/documents")
async def list_documents(db_path: str | None = None):
    """List stored documents, newest first."""
    try:
        service = get_service(db_path)
        return {"documents": service.list_documents()}
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.get("/api/documents/{doc_id}")
async def get_document(doc_id: str, db_path: str | None = None):
    """Return one stored document."""
    try:
        document = get_service(db_path).get_document(doc_id)
        if document is None:
            return JSONResponse({"error": "Document not found"}, status_code=404)
        return {
            "id": document.id,
            "filename": document.filename,
            "content": document.content,
            "created_at": document.created_at,
        }
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.delete("/api/documents/{doc_id}")
async def delete_document(doc_id: str, db_path: str | None = None):
    """Delete a document and its chunks."""
    try:
        if not get_service(db_path).delete_document(doc_id):
            return JSONResponse({"error": "Document not found"}, status_code=404)
        return {"deleted": doc_id}
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.post("/api/search")
async def search(request: SearchRequest):
    """Search stored chunks and return ranked passages with excerpts."""
    try:
        service = get_service(request.db_path)
        response = service.execute(
            request.query, request.limit, per_document=request.per_document
        )
        return {
            "query": request.query,
            "mode": response.mode,
            "reason": response.reason,
            "results": [
                {
                    "chunk_id": result.chunk_id,
                    "doc_id": result.doc_id,
                    "filename": result.filename,
                    "chunk_index": result.chunk_index,
                    "score": round(result.score, 4),
                    "excerpt": result.excerpt,
                    "mode": result.mode,
                }
                for result in response.results
            ],
        }
    except Exception as exc:
        logger.exception("Search failed")
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.get("/api/stats")
async def stats(db_path: str | None = None):
    """Return index statistics."""
    try:
        return get_service(db_path).stats()
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.post("/api/reindex")
async def reindex(request: ReindexRequest):
    """Embed chunks that are missing vectors (or all chunks when forced)."""
    try:
        result = get_service(request.db_path).reindex(force=request.force)
        return {
            "candidates": result.candidates,
            "embeddings_written": result.embeddings_written,
            "embeddings_failed": result.embeddings_failed,
        }
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
