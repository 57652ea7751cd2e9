"""Tantivy-backed document index.

Documents are analyzed with the same per-field analyzers as the in-memory
index and handed to tantivy pre-tokenized: keyword fields as single ``raw``
terms, text fields as ``whitespace``-separated analyzed tokens. Query trees
built against those analyzers therefore address the same terms in both
engines, and `TantivyQueryTranslator` maps every node onto a native tantivy
query.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict
from itertools import combinations
from pathlib import Path
from typing import Any

import structlog

from doc_library.analysis.analyzers import PerFieldAnalyzer, index_analyzer
from doc_library.errors import IndexStorageError
from doc_library.index.memory import INDEXED_FIELDS, document_fields
from doc_library.query.nodes import (
    Boolean,
    DisjunctionMax,
    Fuzzy,
    Occur,
    Phrase,
    Prefix,
    QueryNode,
    Term,
)
from doc_library.types import Document, ScoredDocument

logger = structlog.get_logger(__name__)

SOURCE_FIELD = "source_json"
WRITER_HEAP_BYTES = 50_000_000


def encode_document(document: Document) -> bytes:
    return json.dumps(asdict(document), ensure_ascii=False).encode("utf-8")


def decode_document(raw: Any) -> Document:
    data = json.loads(bytes(raw).decode("utf-8"))
    data["tags"] = tuple(data.get("tags") or ())
    data["related_to"] = tuple(data.get("related_to") or ())
    return Document(**data)


class TantivyQueryTranslator:
    """Recursive translation of the query tree into ``tantivy.Query`` objects.

    Tantivy booleans have no minimum-should-match, so a Boolean that needs
    more SHOULD matches than tantivy's implicit one gets an extra MUST gate:
    a disjunction over every ``k``-combination of its SHOULD clauses, boosted
    to zero so only the original clauses contribute to the score.
    """

    def __init__(self, tantivy: Any, schema: Any, fields: frozenset[str]) -> None:
        self._tantivy = tantivy
        self._schema = schema
        self._fields = fields
        self._occurs = {
            Occur.MUST: tantivy.Occur.Must,
            Occur.SHOULD: tantivy.Occur.Should,
            Occur.MUST_NOT: tantivy.Occur.MustNot,
        }

    def translate(self, node: QueryNode) -> Any:
        query = self._translate(node)
        if node.boost != 1.0:
            query = self._tantivy.Query.boost_query(query, node.boost)
        return query

    def nothing(self) -> Any:
        return self._tantivy.Query.boolean_query([])

    def _translate(self, node: QueryNode) -> Any:
        Query = self._tantivy.Query
        if isinstance(node, (Term, Prefix, Fuzzy, Phrase)) and node.field not in self._fields:
            return self.nothing()

        if isinstance(node, Term):
            return Query.term_query(self._schema, node.field, node.text)
        if isinstance(node, Prefix):
            return Query.regex_query(self._schema, node.field, re.escape(node.text) + ".*")
        if isinstance(node, Fuzzy):
            return Query.fuzzy_term_query(
                self._schema,
                node.field,
                node.text,
                distance=node.max_edits,
                transposition_cost_one=True,
                prefix=False,
            )
        if isinstance(node, Phrase):
            if len(node.terms) == 1:
                return Query.term_query(self._schema, node.field, node.terms[0])
            return Query.phrase_query(self._schema, node.field, list(node.terms), slop=node.slop)
        if isinstance(node, DisjunctionMax):
            if not node.children:
                return self.nothing()
            children = [self.translate(child) for child in node.children]
            return Query.disjunction_max_query(children, tie_breaker=node.tie_breaker)
        if isinstance(node, Boolean):
            return self._boolean(node)
        raise TypeError(f"Unsupported query node: {type(node).__name__}")

    def _boolean(self, node: Boolean) -> Any:
        Query = self._tantivy.Query
        Must = self._tantivy.Occur.Must
        Should = self._tantivy.Occur.Should

        translated = [self.translate(clause.query) for clause in node.clauses]
        clauses = [(self._occurs[clause.occur], query) for clause, query in zip(node.clauses, translated)]
        should = [
            query for clause, query in zip(node.clauses, translated) if clause.occur is Occur.SHOULD
        ]
        implicit = 0 if node.must_count else 1
        if node.minimum_should_match > implicit:
            gate = Query.boolean_query(
                [
                    (Should, Query.boolean_query([(Must, query) for query in combo]))
                    for combo in combinations(should, node.minimum_should_match)
                ]
            )
            clauses.append((Must, Query.boost_query(gate, 0.0)))
        return Query.boolean_query(clauses)


class TantivySnapshot:
    """A tantivy searcher pinned to the segments of one commit."""

    def __init__(self, searcher: Any, translator: TantivyQueryTranslator, id_query: Any) -> None:
        self._searcher = searcher
        self._translator = translator
        self._id_query = id_query

    @property
    def num_docs(self) -> int:
        return int(self._searcher.num_docs)

    def get(self, doc_id: str) -> Document | None:
        hits = self._searcher.search(self._id_query(doc_id), 1).hits
        if not hits:
            return None
        _, address = hits[0]
        return self._load(address)

    def search(self, query: QueryNode, limit: int, offset: int = 0) -> list[ScoredDocument]:
        if limit <= 0:
            return []
        native = self._translator.translate(query)
        hits = self._searcher.search(native, limit, offset=offset).hits
        return [
            ScoredDocument(document=self._load(address), score=float(score), rank=offset + i + 1)
            for i, (score, address) in enumerate(hits)
        ]

    def _load(self, address: Any) -> Document:
        return decode_document(self._searcher.doc(address).get_first(SOURCE_FIELD))


class TantivyDocumentIndex:
    """`DocumentIndex` adapter over a tantivy index, in RAM or on disk.

    It keeps the same contract as `InMemoryDocumentIndex` so the two can be
    swapped: one long-lived writer stages changes, `commit` reloads the
    reader, and each snapshot holds its own searcher. Adding an id that
    already exists replaces it.
    """

    def __init__(
        self,
        analyzer: PerFieldAnalyzer | None = None,
        *,
        path: str | Path | None = None,
        heap_size: int = WRITER_HEAP_BYTES,
    ) -> None:
        try:
            import tantivy
        except ImportError as exc:
            raise IndexStorageError(
                "tantivy is not installed; install the 'tantivy' extra of doc-library"
            ) from exc

        self._tantivy = tantivy
        self.analyzer = analyzer or index_analyzer()
        self._schema = self._build_schema()
        if path is not None:
            Path(path).mkdir(parents=True, exist_ok=True)
            self._index = tantivy.Index(self._schema, path=str(path), reuse=True)
        else:
            self._index = tantivy.Index(self._schema)
        self._writer = self._index.writer(heap_size=heap_size, num_threads=1)
        self._translator = TantivyQueryTranslator(tantivy, self._schema, frozenset(INDEXED_FIELDS))

        self._index.reload()
        self._committed_ids = self._stored_ids()
        self._staged_ids = set(self._committed_ids)
        logger.info("tantivy_index_opened", path=str(path) if path else None, documents=len(self._committed_ids))

    def _build_schema(self) -> Any:
        builder = self._tantivy.SchemaBuilder()
        for name in INDEXED_FIELDS:
            tokenizer = "raw" if self.analyzer.is_keyword(name) else "whitespace"
            builder.add_text_field(name, stored=False, tokenizer_name=tokenizer, index_option="position")
        builder.add_bytes_field(SOURCE_FIELD, stored=True)
        return builder.build()

    def _to_native(self, document: Document) -> Any:
        native = self._tantivy.Document()
        for name, values in document_fields(document).items():
            keyword = self.analyzer.is_keyword(name)
            for value in values:
                tokens = self.analyzer.analyze_field(name, value or "")
                if not tokens:
                    continue
                if keyword:
                    for token in tokens:
                        native.add_text(name, token)
                else:
                    native.add_text(name, " ".join(tokens))
        native.add_bytes(SOURCE_FIELD, encode_document(document))
        return native

    def _id_query(self, doc_id: str) -> Any:
        return self._tantivy.Query.term_query(self._schema, "id", doc_id)

    def _stored_ids(self) -> set[str]:
        searcher = self._index.searcher()
        if not searcher.num_docs:
            return set()
        hits = searcher.search(self._tantivy.Query.all_query(), searcher.num_docs).hits
        return {
            decode_document(searcher.doc(address).get_first(SOURCE_FIELD)).id for _, address in hits
        }

    def add_document(self, document: Document) -> None:
        self._writer.delete_documents("id", document.id)
        self._writer.add_document(self._to_native(document))
        self._staged_ids.add(document.id)

    def update_document(self, document: Document) -> None:
        self.add_document(document)

    def delete_document(self, doc_id: str) -> bool:
        if doc_id not in self._staged_ids:
            return False
        self._writer.delete_documents("id", doc_id)
        self._staged_ids.discard(doc_id)
        return True

    def commit(self) -> None:
        self._writer.commit()
        self._index.reload()
        self._committed_ids = set(self._staged_ids)

    def rollback(self) -> None:
        """Drop staged changes and return to the last committed state."""
        self._writer.rollback()
        self._staged_ids = set(self._committed_ids)

    def open_snapshot(self) -> TantivySnapshot:
        return TantivySnapshot(self._index.searcher(), self._translator, self._id_query)
