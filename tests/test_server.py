"""Tests for the REST endpoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import doc_search.server as server_module
from doc_search.embeddings import NullEmbeddingProvider
from doc_search.server import app
from doc_search.service import open_service

from .conftest import StaticProvider

AGREEMENT = "The purchase price is $45,000,000 payable at closing."
REPORT = "Risk register and litigation exposure summary for the garden project."


def _use_provider(monkeypatch, provider) -> None:
    monkeypatch.setattr(
        server_module,
        "open_service",
        lambda db_path: open_service(db_path, embedding_provider=provider),
    )


@pytest.fixture()
def db_path(tmp_path: Path):
    yield str(tmp_path / "index.duckdb")
    server_module.reset_services()


@pytest.fixture()
def client(db_path, monkeypatch):
    _use_provider(monkeypatch, StaticProvider())
    return TestClient(app)


def _upload(client, db_path, filename, content):
    return client.post(
        "/api/documents",
        json={"filename": filename, "content": content, "db_path": db_path},
    )


def test_health_reports_embedding_status(client, db_path) -> None:
    response = client.get("/api/health", params={"db_path": db_path})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "embeddings_configured": True}


def test_upload_then_search_semantic(client, db_path) -> None:
    upload = _upload(client, db_path, "agreement.md", AGREEMENT)
    _upload(client, db_path, "report.md", REPORT)

    assert upload.status_code == 200
    body = upload.json()
    assert body["filename"] == "agreement.md"
    assert body["chunks_written"] == 1
    assert body["embedding_scheduled"] is True

    response = client.post(
        "/api/search",
        json={"query": "purchase price", "db_path": db_path},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "purchase price"
    assert data["mode"] == "semantic"
    assert data["reason"] == "semantic"
    assert [hit["filename"] for hit in data["results"]] == ["agreement.md"]
    hit = data["results"][0]
    assert hit["doc_id"] == body["doc_id"]
    assert hit["chunk_index"] == 0
    assert hit["score"] == pytest.approx(1.0)
    assert "purchase price" in hit["excerpt"]


def test_upload_strips_directories_from_filename(client, db_path) -> None:
    response = _upload(client, db_path, "../../etc/agreement.md", AGREEMENT)

    assert response.json()["filename"] == "agreement.md"


def test_upload_rejects_short_content(client, db_path) -> None:
    response = _upload(client, db_path, "tiny.txt", "  short  ")

    assert response.status_code == 400
    assert "insufficient" in response.json()["error"]


def test_upload_rejects_missing_filename(client, db_path) -> None:
    response = _upload(client, db_path, "", AGREEMENT)

    assert response.status_code == 422


def test_search_falls_back_to_lexical_without_provider(db_path, monkeypatch) -> None:
    _use_provider(monkeypatch, NullEmbeddingProvider())
    client = TestClient(app)
    _upload(client, db_path, "report.md", REPORT)

    response = client.post(
        "/api/search",
        json={"query": "litigation exposure", "db_path": db_path},
    )

    data = response.json()
    assert data["mode"] == "lexical"
    assert data["reason"] == "no_provider"
    assert [hit["filename"] for hit in data["results"]] == ["report.md"]
    assert all(hit["mode"] == "lexical" for hit in data["results"])


def test_short_query_returns_empty_results(client, db_path) -> None:
    _upload(client, db_path, "agreement.md", AGREEMENT)

    response = client.post("/api/search", json={"query": "a", "db_path": db_path})

    assert response.status_code == 200
    assert response.json()["results"] == []
    assert response.json()["reason"] == "invalid_query"


def test_search_limit_is_validated(client, db_path) -> None:
    response = client.post(
        "/api/search",
        json={"query": "purchase", "limit": 0, "db_path": db_path},
    )

    assert response.status_code == 422


def test_document_listing_fetch_and_delete(client, db_path) -> None:
    doc_id = _upload(client, db_path, "agreement.md", AGREEMENT).json()["doc_id"]

    listing = client.get("/api/documents", params={"db_path": db_path}).json()
    assert [row["id"] for row in listing["documents"]] == [doc_id]
    assert listing["documents"][0]["embedded_count"] == 1

    fetched = client.get(f"/api/documents/{doc_id}", params={"db_path": db_path})
    assert fetched.status_code == 200
    assert fetched.json()["content"] == AGREEMENT

    deleted = client.delete(f"/api/documents/{doc_id}", params={"db_path": db_path})
    assert deleted.json() == {"deleted": doc_id}

    missing = client.get(f"/api/documents/{doc_id}", params={"db_path": db_path})
    assert missing.status_code == 404
    again = client.delete(f"/api/documents/{doc_id}", params={"db_path": db_path})
    assert again.status_code == 404

    search = client.post(
        "/api/search", json={"query": "purchase price", "db_path": db_path}
    )
    assert search.json()["results"] == []


def test_stats_endpoint(client, db_path) -> None:
    _upload(client, db_path, "agreement.md", AGREEMENT)
    _upload(client, db_path, "report.md", REPORT)

    stats = client.get("/api/stats", params={"db_path": db_path}).json()

    assert stats["documents"] == 2
    assert stats["chunks"] == 2
    assert stats["embedded_chunks"] == 2
    assert stats["total_text_length"] == len(AGREEMENT) + len(REPORT)
    assert stats["embedding_model"] == StaticProvider.model
    assert stats["embeddings_configured"] is True


def test_reindex_endpoint_embeds_pending_chunks(db_path, monkeypatch) -> None:
    _use_provider(monkeypatch, NullEmbeddingProvider())
    client = TestClient(app)
    _upload(client, db_path, "agreement.md", AGREEMENT)
    server_module.reset_services()

    _use_provider(monkeypatch, StaticProvider())
    response = client.post("/api/reindex", json={"db_path": db_path})

    assert response.status_code == 200
    assert response.json() == {
        "candidates": 1,
        "embeddings_written": 1,
        "embeddings_failed": 0,
    }
    stats = client.get("/api/stats", params={"db_path": db_path}).json()
    assert stats["embedded_chunks"] == 1
