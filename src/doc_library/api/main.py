"""FastAPI entrypoint for document, search and trace endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Response

from doc_library.errors import (
    DocumentNotFoundError,
    IndexStorageError,
    SmartSearchUnavailableError,
    StructuredQueryError,
)
from doc_library.obs.logging import configure_logging
from doc_library.schemas import DocumentPayload, SmartSearchRequest
from doc_library.service import DocumentLibrary
from doc_library.settings import LibrarySettings


def create_app(library: DocumentLibrary | None = None, settings: LibrarySettings | None = None) -> FastAPI:
    """Build the API around ``library`` (a fresh in-memory one by default)."""

    settings = settings or LibrarySettings()
    configure_logging(settings.log_level, settings.log_format)
    library = library or DocumentLibrary.from_settings(settings)

    app = FastAPI(title="Document Library", version="0.1.0")
    app.state.library = library
    documents = APIRouter(prefix="/api/documents", tags=["documents"])

    @documents.post("/add")
    def add_document(payload: DocumentPayload) -> dict[str, Any]:
        try:
            library.add_document(payload.to_domain())
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=f"Error adding document: {exc}") from exc
        return {"message": "Document added successfully!", "id": payload.id}

    @documents.post("/add-bulk")
    def add_bulk_documents(payloads: list[DocumentPayload]) -> dict[str, Any]:
        try:
            count = library.add_bulk_documents(payload.to_domain() for payload in payloads)
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=f"Error adding documents: {exc}") from exc
        return {"message": "Documents added successfully!", "count": count}

    @documents.get("/search")
    def search_documents(
        q: str = Query(min_length=1),
        limit: int = Query(default=10, ge=1, le=100),
    ) -> list[dict[str, Any]]:
        try:
            results = library.search(q, limit=limit)
        except StructuredQueryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return [DocumentPayload.from_domain(doc).wire() for doc in results]

    @documents.post("/smart-search")
    def smart_search(request: SmartSearchRequest) -> dict[str, Any]:
        try:
            result = library.smart_search(request.text, limit=request.limit, offset=request.offset)
        except SmartSearchUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {
            "intent": result.intent.value,
            "documents": [DocumentPayload.from_domain(doc).wire() for doc in result.documents],
            "message": result.message,
            "trace_id": result.trace_id,
        }

    @documents.get("/{doc_id}")
    def get_by_id(doc_id: str) -> dict[str, Any]:
        document = library.get_by_id(doc_id)
        if document is None:
            raise HTTPException(status_code=404, detail=f"No document with id {doc_id}")
        return DocumentPayload.from_domain(document).wire()

    @documents.put("/{doc_id}")
    def upsert_document(doc_id: str, payload: DocumentPayload) -> dict[str, Any]:
        if payload.id != doc_id:
            raise HTTPException(status_code=400, detail=f"Body id {payload.id!r} does not match path id {doc_id!r}")
        try:
            library.upsert_document(payload.to_domain())
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=f"Error upserting document: {exc}") from exc
        return {"message": f"Upsert successful for docId={doc_id}", "id": doc_id}

    @documents.delete("/{doc_id}", status_code=204)
    def delete_by_id(doc_id: str) -> Response:
        try:
            deleted = library.delete_by_id(doc_id)
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        if not deleted:
            raise HTTPException(status_code=404, detail=f"No document with id {doc_id}")
        return Response(status_code=204)

    @documents.patch("/{doc_id}")
    def update_fields(doc_id: str, changes: dict[str, Any] = Body(...)) -> dict[str, Any]:
        try:
            document = library.patch_document(doc_id, changes)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except IndexStorageError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return DocumentPayload.from_domain(document).wire()

    app.include_router(documents)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "documents": library.index.open_snapshot().num_docs,
            "smart_search_available": library.smart_search_available,
            "trace_count": len(library.trace_store.list_recent(limit=library.trace_store.max_records)),
        }

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in library.trace_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = library.trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return library.trace_store.summary()

    return app


app = create_app()
