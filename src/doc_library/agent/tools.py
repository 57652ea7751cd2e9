"""Library operations exposed as agent tools."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from doc_library.agent.registry import ToolRegistry, ToolSpec
from doc_library.errors import DocumentNotFoundError
from doc_library.schemas import DocumentPayload
from doc_library.service import DocumentLibrary


class AddDocumentInput(BaseModel):
    document: DocumentPayload


class AddBulkDocumentsInput(BaseModel):
    documents: list[DocumentPayload] = Field(min_length=1)


class SmartSearchInput(BaseModel):
    text: str
    limit: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class DocIdInput(BaseModel):
    doc_id: str = Field(min_length=1)


class UpdateFieldsInput(BaseModel):
    doc_id: str = Field(min_length=1)
    changes: dict[str, Any] = Field(default_factory=dict)


ADD_DOCUMENT_DESCRIPTION = """\
Adds a single document to the document library index.
Each document contains a title, category, steps to perform, tags, related topics, and notes.
Use it to save a new task, tutorial, checklist, or reference so it can be found later by search."""

ADD_BULK_DESCRIPTION = """\
Adds multiple documents to the document library in a single operation.
Use this when importing a collection of task guides, references, or process steps."""

SMART_SEARCH_DESCRIPTION = """\
Search the document library using FREE-FORM user text (errors, stack traces or how-to requests).
Do NOT write query syntax yourself: pass the raw text and the service builds an intent-aware query.
Returns ranked matches; use `id` from the results to fetch the full document.
If there are no matches, reply EXACTLY with the returned message.
Include concrete tokens (exception names, HTTP codes, equipment, verbs) in `text` when available."""

GET_BY_ID_DESCRIPTION = """\
Fetch a single document by its unique docId (exact, case-sensitive match).
If not found, tell the user no document exists for that docId. Do not invent content."""

UPSERT_DESCRIPTION = """\
Create or replace the document with the given id.
Replaces the entire document: fields omitted from the payload will no longer exist."""

DELETE_DESCRIPTION = """\
Delete a document by its unique docId (idempotent).
Returns whether a document was deleted. If not, inform the user the docId was not found."""

UPDATE_FIELDS_DESCRIPTION = """\
Read-modify-write update for a document identified by docId.
`changes` maps field names (docType, title, category, content, notes, tags, relatedTo) to new values.
Use for small edits such as notes or tags. If the document does not exist, report not found."""


def register_library_tools(registry: ToolRegistry, library: DocumentLibrary) -> None:
    """Register the document library tool set.

    Tools:
    - `addDocument` / `addBulkDocuments`: index new documents.
    - `smartSearch`: free-text, intent-aware search.
    - `getById`, `upsertDocument`, `deleteById`, `updateFields`: keyed access.
    """

    def _add(input_data: AddDocumentInput) -> str:
        library.add_document(input_data.document.to_domain())
        return _dumps({"added": input_data.document.id})

    def _add_bulk(input_data: AddBulkDocumentsInput) -> str:
        count = library.add_bulk_documents(doc.to_domain() for doc in input_data.documents)
        return _dumps({"added": count})

    def _smart_search(input_data: SmartSearchInput) -> str:
        result = library.smart_search(input_data.text, limit=input_data.limit, offset=input_data.offset)
        return _dumps(
            {
                "intent": result.intent.value,
                "documents": [DocumentPayload.from_domain(doc).wire() for doc in result.documents],
                "message": result.message,
            }
        )

    def _get_by_id(input_data: DocIdInput) -> str:
        document = library.get_by_id(input_data.doc_id)
        if document is None:
            return _dumps({"found": False, "message": f"No document exists for docId={input_data.doc_id}"})
        return _dumps({"found": True, "document": DocumentPayload.from_domain(document).wire()})

    def _upsert(input_data: AddDocumentInput) -> str:
        library.upsert_document(input_data.document.to_domain())
        return _dumps({"upserted": input_data.document.id})

    def _delete(input_data: DocIdInput) -> str:
        return _dumps({"deleted": library.delete_by_id(input_data.doc_id)})

    def _update_fields(input_data: UpdateFieldsInput) -> str:
        try:
            document = library.patch_document(input_data.doc_id, input_data.changes)
        except DocumentNotFoundError as exc:
            return _dumps({"updated": False, "message": str(exc)})
        return _dumps({"updated": True, "document": DocumentPayload.from_domain(document).wire()})

    specs = [
        ("addDocument", ADD_DOCUMENT_DESCRIPTION, AddDocumentInput, _add, ["write"]),
        ("addBulkDocuments", ADD_BULK_DESCRIPTION, AddBulkDocumentsInput, _add_bulk, ["write"]),
        ("smartSearch", SMART_SEARCH_DESCRIPTION, SmartSearchInput, _smart_search, ["search"]),
        ("getById", GET_BY_ID_DESCRIPTION, DocIdInput, _get_by_id, ["read"]),
        ("upsertDocument", UPSERT_DESCRIPTION, AddDocumentInput, _upsert, ["write"]),
        ("deleteById", DELETE_DESCRIPTION, DocIdInput, _delete, ["write"]),
        ("updateFields", UPDATE_FIELDS_DESCRIPTION, UpdateFieldsInput, _update_fields, ["write"]),
    ]
    for name, description, args_schema, handler, tags in specs:
        registry.register(
            ToolSpec(
                name=name,
                description=description,
                args_schema=args_schema,
                handler=handler,
                tags=tags,
            )
        )


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)
