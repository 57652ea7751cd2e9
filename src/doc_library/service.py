"""Document library service: the boundary used by the API and the tools."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from typing import Any, TypeVar

import structlog

from doc_library.config import SearchConfig
from doc_library.errors import (
    DocumentLibraryError,
    DocumentNotFoundError,
    IndexStorageError,
    SmartSearchUnavailableError,
    SynonymLoadError,
)
from doc_library.index.memory import DocumentIndex, InMemoryDocumentIndex
from doc_library.index.tantivy_index import TantivyDocumentIndex
from doc_library.index.structured import StructuredQueryParser
from doc_library.obs.tracing import SearchTraceStore, Timer
from doc_library.query.builder import SmartQueryBuilder
from doc_library.query.nodes import render_query
from doc_library.settings import LibrarySettings
from doc_library.types import Document, SmartSearchResult

logger = structlog.get_logger(__name__)

NO_RESULTS_MESSAGE = "Sorry, I could find no documents. Maybe you could recommend a search I could use."

T = TypeVar("T")


class DocumentLibrary:
    """Keyed document storage with structured and free-text search.

    Mutations are serialized by a single lock and committed before the lock
    is released. Reads never take the lock: each one opens the latest
    committed snapshot and works on it in isolation.
    """

    def __init__(
        self,
        index: DocumentIndex | None = None,
        query_builder: SmartQueryBuilder | None = None,
        *,
        config: SearchConfig | None = None,
        trace_store: SearchTraceStore | None = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.index = index or InMemoryDocumentIndex(config=self.config)
        self.query_builder = query_builder
        self.parser = StructuredQueryParser(self.index.analyzer)
        self.trace_store = trace_store or SearchTraceStore()
        self._write_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: LibrarySettings | None = None) -> "DocumentLibrary":
        """Build a library; a broken synonym table only disables smart search."""

        settings = settings or LibrarySettings()
        config = SearchConfig(default_limit=settings.default_limit)
        try:
            builder: SmartQueryBuilder | None = SmartQueryBuilder.with_synonyms(settings.synonyms_path)
        except SynonymLoadError as exc:
            logger.error("smart_search_disabled", error=str(exc))
            builder = None
        return cls(build_index(settings, config), builder, config=config)

    @property
    def smart_search_available(self) -> bool:
        return self.query_builder is not None

    # ------------------------------------------------------------------ writes

    def add_document(self, document: Document) -> None:
        self._mutate(lambda: self.index.add_document(document))
        logger.info("document_added", doc_id=document.id)

    def add_bulk_documents(self, documents: Iterable[Document]) -> int:
        """Stage every document and commit once; returns how many were added."""

        batch = list(documents)

        def _add_all() -> int:
            for document in batch:
                self.index.add_document(document)
            return len(batch)

        count = self._mutate(_add_all)
        logger.info("documents_added", count=count)
        return count

    def upsert_document(self, document: Document) -> None:
        self._mutate(lambda: self.index.update_document(document))
        logger.info("document_upserted", doc_id=document.id)

    def delete_by_id(self, doc_id: str) -> bool:
        deleted = self._mutate(lambda: self.index.delete_document(doc_id))
        logger.info("document_deleted", doc_id=doc_id, deleted=deleted)
        return deleted

    def update_fields(self, doc_id: str, mutate: Callable[[Document], Document]) -> Document:
        """Read-modify-write of one document under the writer lock."""

        def _apply() -> Document:
            current = self.index.open_snapshot().get(doc_id)
            if current is None:
                raise DocumentNotFoundError(doc_id)
            updated = mutate(current)
            if updated.id != doc_id:
                updated = replace(updated, id=doc_id)
            self.index.update_document(updated)
            return updated

        updated = self._mutate(_apply)
        logger.info("document_updated", doc_id=doc_id)
        return updated

    def patch_document(self, doc_id: str, changes: Mapping[str, Any]) -> Document:
        return self.update_fields(doc_id, lambda current: apply_patch(current, changes))

    def _mutate(self, action: Callable[[], T]) -> T:
        with self._write_lock:
            try:
                result = action()
                self.index.commit()
            except DocumentLibraryError:
                self.index.rollback()
                raise
            except Exception as exc:
                self.index.rollback()
                raise IndexStorageError(f"Index update failed: {exc}") from exc
        return result

    # ------------------------------------------------------------------- reads

    def get_by_id(self, doc_id: str) -> Document | None:
        return self.index.open_snapshot().get(doc_id)

    def search(self, query: str, limit: int | None = None) -> list[Document]:
        """Run a structured query string such as ``category:Programming AND tags:spring``.

        Raises `StructuredQueryError` for malformed input.
        """

        node = self.parser.parse(query)
        hits = self._run(lambda: self.index.open_snapshot().search(node, self._limit(limit)))
        logger.info("structured_search", query=query, hits=len(hits))
        return [hit.document for hit in hits]

    def smart_search(self, text: str, limit: int | None = None, offset: int = 0) -> SmartSearchResult:
        """Free-text search over errors, stack traces or how-to questions.

        An empty result carries `NO_RESULTS_MESSAGE`; it is not an error.
        """

        if self.query_builder is None:
            raise SmartSearchUnavailableError("Smart search is unavailable: synonyms failed to load")

        with Timer() as timer:
            built = self.query_builder.build(text)
            if built.rejected:
                hits = []
            else:
                hits = self._run(
                    lambda: self.index.open_snapshot().search(
                        built.root, self._limit(limit), max(0, offset)
                    )
                )

        rendered = render_query(built.root)
        documents = [hit.document for hit in hits]
        logger.info(
            "smart_search",
            intent=built.intent.value,
            query=rendered,
            hits=len(documents),
            latency_ms=round(timer.elapsed_ms, 3),
        )
        trace = self.trace_store.create_record(
            text=text or "",
            intent=built.intent,
            query=rendered,
            rejected=built.rejected,
            must_clauses=built.root.must_count,
            minimum_should_match=built.root.minimum_should_match,
            doc_ids=[document.id for document in documents],
            latency_ms=timer.elapsed_ms,
        )
        return SmartSearchResult(
            documents=documents,
            message=None if documents else NO_RESULTS_MESSAGE,
            intent=built.intent,
            trace_id=trace.trace_id,
        )

    def _limit(self, limit: int | None) -> int:
        if limit is None:
            return self.config.default_limit
        return max(1, min(limit, self.config.max_limit))

    @staticmethod
    def _run(action: Callable[[], T]) -> T:
        try:
            return action()
        except DocumentLibraryError:
            raise
        except Exception as exc:
            raise IndexStorageError(f"Index read failed: {exc}") from exc


def build_index(settings: LibrarySettings, config: SearchConfig) -> DocumentIndex:
    """The engine named by ``settings.index_engine``."""

    if settings.index_engine == "tantivy":
        return TantivyDocumentIndex(path=settings.index_path)
    return InMemoryDocumentIndex(config=config)


def apply_patch(current: Document, changes: Mapping[str, Any]) -> Document:
    """Apply a permissive partial update keyed by wire field names.

    Strings replace the current value when present and not null. List fields
    accept a list, a comma-separated string, or null (keep current). The id
    is never changed by a patch.
    """

    return Document(
        id=current.id,
        doc_type=_pick_string(changes, "docType", current.doc_type),
        title=_pick_string(changes, "title", current.title),
        category=_pick_string(changes, "category", current.category),
        content=_pick_string(changes, "content", current.content),
        notes=_pick_string(changes, "notes", current.notes),
        tags=_pick_string_list(changes.get("tags"), current.tags),
        related_to=_pick_string_list(changes.get("relatedTo"), current.related_to),
    )


def _pick_string(changes: Mapping[str, Any], key: str, fallback: str) -> str:
    value = changes.get(key)
    return fallback if value is None else str(value)


def _pick_string_list(value: Any, fallback: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return fallback
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return fallback
