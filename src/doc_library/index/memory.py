"""Document index contract and an in-memory implementation."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

from doc_library.analysis.analyzers import PerFieldAnalyzer, index_analyzer
from doc_library.config import SearchConfig
from doc_library.index.evaluator import compile_query
from doc_library.query.nodes import QueryNode
from doc_library.types import Document, ScoredDocument

# Position gap between values of a multi-valued field, so phrases never
# span two tags.
MULTI_VALUE_GAP = 100

INDEXED_FIELDS: tuple[str, ...] = (
    "id",
    "docType",
    "docType_text",
    "title",
    "category",
    "category_exact",
    "content",
    "notes",
    "tags",
    "tags_exact",
    "relatedTo",
    "catchAll",
)


class IndexSnapshot(Protocol):
    """Point-in-time, read-only view of the index."""

    @property
    def num_docs(self) -> int:
        """Number of live documents in this snapshot."""

    def search(self, query: QueryNode, limit: int, offset: int = 0) -> list[ScoredDocument]:
        """Top documents by descending score, skipping ``offset`` hits."""

    def get(self, doc_id: str) -> Document | None:
        """Exact lookup by id."""


class DocumentIndex(Protocol):
    """Keyed mutation plus isolated snapshot reads.

    Mutations are invisible to readers until `commit`. Implementations do not
    have to support concurrent writers; callers serialize them.
    """

    analyzer: PerFieldAnalyzer

    def add_document(self, document: Document) -> None:
        """Stage a document for indexing."""

    def update_document(self, document: Document) -> None:
        """Stage a replacement of the document with the same id."""

    def delete_document(self, doc_id: str) -> bool:
        """Stage a deletion; return whether the id was present."""

    def commit(self) -> None:
        """Publish staged changes to snapshots opened afterwards."""

    def rollback(self) -> None:
        """Discard staged changes."""

    def open_snapshot(self) -> IndexSnapshot:
        """Return the latest committed snapshot."""


@dataclass(frozen=True, slots=True)
class IndexedField:
    """Analyzed terms of one field with their positions."""

    positions: Mapping[str, tuple[int, ...]]
    length: int

    def freq(self, term: str) -> int:
        return len(self.positions.get(term, ()))


@dataclass(frozen=True, slots=True)
class IndexedDocument:
    seq: int
    document: Document
    fields: Mapping[str, IndexedField]

    def field(self, name: str) -> IndexedField | None:
        return self.fields.get(name)


def document_fields(document: Document) -> dict[str, list[str]]:
    """Field values the engine indexes for a document."""

    catch_all = " ".join(
        [document.title, document.doc_type, document.content, document.notes, *document.tags]
    )
    return {
        "id": [document.id],
        "docType": [document.doc_type],
        "docType_text": [document.doc_type],
        "title": [document.title],
        "category": [document.category],
        "category_exact": [document.category],
        "content": [document.content],
        "notes": [document.notes],
        "tags": list(document.tags),
        "tags_exact": list(document.tags),
        "relatedTo": list(document.related_to),
        "catchAll": [catch_all],
    }


def analyze_document(analyzer: PerFieldAnalyzer, document: Document, seq: int) -> IndexedDocument:
    fields: dict[str, IndexedField] = {}
    for name, values in document_fields(document).items():
        positions: dict[str, list[int]] = {}
        offset = 0
        length = 0
        for value in values:
            tokens = analyzer.analyze_field(name, value or "")
            for i, token in enumerate(tokens):
                positions.setdefault(token, []).append(offset + i)
            length += len(tokens)
            offset += len(tokens) + MULTI_VALUE_GAP
        fields[name] = IndexedField(
            positions=MappingProxyType({term: tuple(pos) for term, pos in positions.items()}),
            length=length,
        )
    return IndexedDocument(seq=seq, document=document, fields=MappingProxyType(fields))


class FieldStats:
    """Document frequencies and average lengths, per field."""

    def __init__(self, docs: Iterable[IndexedDocument]) -> None:
        self.doc_count = 0
        self._doc_freq: dict[str, Counter[str]] = {}
        self._total_length: Counter[str] = Counter()
        for doc in docs:
            self.doc_count += 1
            for name, indexed in doc.fields.items():
                self._doc_freq.setdefault(name, Counter()).update(indexed.positions.keys())
                self._total_length[name] += indexed.length

    def doc_freq(self, field: str, term: str) -> int:
        return self._doc_freq.get(field, Counter())[term]

    def terms(self, field: str) -> Iterable[str]:
        return self._doc_freq.get(field, Counter()).keys()

    def avg_length(self, field: str) -> float:
        if not self.doc_count:
            return 0.0
        return self._total_length[field] / self.doc_count


class InMemorySnapshot:
    """Immutable view over the documents of one commit."""

    def __init__(self, docs: Iterable[IndexedDocument], config: SearchConfig) -> None:
        self._docs: tuple[IndexedDocument, ...] = tuple(docs)
        self._by_id: Mapping[str, IndexedDocument] = MappingProxyType(
            {doc.document.id: doc for doc in self._docs}
        )
        self.stats = FieldStats(self._docs)
        self.config = config

    @property
    def num_docs(self) -> int:
        return len(self._docs)

    def documents(self) -> tuple[IndexedDocument, ...]:
        return self._docs

    def get(self, doc_id: str) -> Document | None:
        doc = self._by_id.get(doc_id)
        return doc.document if doc is not None else None

    def search(self, query: QueryNode, limit: int, offset: int = 0) -> list[ScoredDocument]:
        if limit <= 0:
            return []
        matcher = compile_query(query, self)
        scored = []
        for doc in self._docs:
            score = matcher.score(doc)
            if score is not None:
                scored.append((score, doc))

        scored.sort(key=lambda item: (-item[0], item[1].seq))
        window = scored[offset : offset + limit]
        return [
            ScoredDocument(document=doc.document, score=score, rank=offset + i + 1)
            for i, (score, doc) in enumerate(window)
        ]


class InMemoryDocumentIndex:
    """Deterministic index used for tests, local runs and small libraries.

    Writes go to a staging map keyed by document id; `commit` freezes it into
    a new `InMemorySnapshot`. Readers holding an older snapshot keep seeing
    it unchanged. Adding an id that already exists replaces it.
    """

    def __init__(
        self,
        analyzer: PerFieldAnalyzer | None = None,
        config: SearchConfig | None = None,
    ) -> None:
        self.analyzer = analyzer or index_analyzer()
        self.config = config or SearchConfig()
        self._staged: dict[str, IndexedDocument] = {}
        self._next_seq = 0
        self._snapshot = InMemorySnapshot((), self.config)

    def add_document(self, document: Document) -> None:
        self._staged.pop(document.id, None)
        self._staged[document.id] = analyze_document(self.analyzer, document, self._next_seq)
        self._next_seq += 1

    def update_document(self, document: Document) -> None:
        self.add_document(document)

    def delete_document(self, doc_id: str) -> bool:
        return self._staged.pop(doc_id, None) is not None

    def commit(self) -> None:
        self._snapshot = InMemorySnapshot(self._staged.values(), self.config)

    def rollback(self) -> None:
        """Drop staged changes and return to the last committed state."""
        self._staged = {doc.document.id: doc for doc in self._snapshot.documents()}

    def open_snapshot(self) -> InMemorySnapshot:
        return self._snapshot
