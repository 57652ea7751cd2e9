import pytest

pytest.importorskip("tantivy")

from doc_library.index.tantivy_index import TantivyDocumentIndex  # noqa: E402
from doc_library.query.builder import SmartQueryBuilder  # noqa: E402
from doc_library.query.nodes import (  # noqa: E402
    MATCH_NOTHING,
    Boolean,
    Clause,
    DisjunctionMax,
    Fuzzy,
    Occur,
    Phrase,
    Prefix,
    Term,
)
from doc_library.service import DocumentLibrary  # noqa: E402
from doc_library.types import Document  # noqa: E402


def _doc(doc_id: str, title: str, content: str = "", doc_type: str = "HowTo", tags: tuple[str, ...] = ()) -> Document:
    return Document(
        id=doc_id,
        doc_type=doc_type,
        title=title,
        category="Maintenance",
        content=content,
        notes="",
        tags=tags,
    )


def _index(*docs: Document) -> TantivyDocumentIndex:
    index = TantivyDocumentIndex()
    for doc in docs:
        index.add_document(doc)
    index.commit()
    return index


def _ids(index: TantivyDocumentIndex, query, limit: int = 10) -> list[str]:
    return [hit.document.id for hit in index.open_snapshot().search(query, limit)]


def test_commit_publishes_and_old_snapshots_stay_put() -> None:
    index = _index(_doc("a", "Pump seal"))
    before = index.open_snapshot()

    index.add_document(_doc("b", "Pump overview"))
    assert index.open_snapshot().num_docs == 1
    index.commit()

    assert before.num_docs == 1
    assert before.get("b") is None
    assert index.open_snapshot().num_docs == 2
    assert index.open_snapshot().get("b") == _doc("b", "Pump overview")


def test_replace_delete_and_rollback() -> None:
    index = _index(_doc("a", "Pump seal", tags=("pump", "seal")))

    index.add_document(_doc("a", "Valve kit"))
    index.commit()
    assert index.open_snapshot().num_docs == 1
    assert index.open_snapshot().get("a").title == "Valve kit"

    assert index.delete_document("a")
    assert not index.delete_document("a")
    index.rollback()
    assert index.open_snapshot().get("a").title == "Valve kit"
    assert index.delete_document("a")
    index.commit()
    assert index.open_snapshot().get("a") is None


def test_leaf_queries() -> None:
    index = _index(
        _doc("a", "Calibration of sensors", "java heap space exhausted"),
        _doc("b", "Replace valve", "java uses heap and space", doc_type="Troubleshooting"),
    )

    assert _ids(index, Term("title", "valve")) == ["b"]
    assert _ids(index, Term("docType", "Troubleshooting")) == ["b"]
    assert _ids(index, Term("docType", "troubleshooting")) == []
    assert _ids(index, Prefix("title", "calib")) == ["a"]
    assert _ids(index, Fuzzy("title", "sensor", 1)) == ["a"]
    assert _ids(index, Phrase("content", ("java", "heap", "space"))) == ["a"]
    assert _ids(index, Term("unknown", "valve")) == []


def test_boolean_minimum_should_match_and_must_not() -> None:
    index = _index(
        _doc("a", "Pump seal leak"),
        _doc("b", "Pump overview"),
        _doc("c", "Seal kit"),
    )
    two_of = Boolean(
        (
            Clause(Term("title", "pump"), Occur.SHOULD),
            Clause(Term("title", "seal"), Occur.SHOULD),
        ),
        minimum_should_match=2,
    )
    without_seal = Boolean(
        (
            Clause(Term("title", "pump"), Occur.SHOULD),
            Clause(Term("title", "seal"), Occur.MUST_NOT),
        )
    )

    assert _ids(index, two_of) == ["a"]
    assert set(_ids(index, Boolean(two_of.clauses))) == {"a", "b", "c"}
    assert _ids(index, without_seal) == ["b"]
    assert _ids(index, Boolean((Clause(Term("title", "seal"), Occur.MUST_NOT),))) == []
    assert _ids(index, MATCH_NOTHING) == []


def test_dismax_and_paging() -> None:
    index = _index(*[_doc(f"d{i}", "pump " * (i + 1)) for i in range(4)])
    query = DisjunctionMax((Term("title", "pump", 3.0), Term("content", "pump")), 0.1)

    first = index.open_snapshot().search(query, limit=2)
    second = index.open_snapshot().search(query, limit=2, offset=2)

    assert [hit.rank for hit in first] == [1, 2]
    assert [hit.rank for hit in second] == [3, 4]
    assert {hit.document.id for hit in first}.isdisjoint(hit.document.id for hit in second)


def test_library_runs_smart_and_structured_search_on_tantivy() -> None:
    library = DocumentLibrary(TantivyDocumentIndex(), SmartQueryBuilder.with_synonyms())
    library.add_bulk_documents(
        [
            Document(
                id="tls-1",
                doc_type="Troubleshooting",
                title="Fixing TLS handshake / certificate errors",
                category="Operations",
                content="Import the server certificate into the JVM truststore.",
                notes="",
                tags=("tls", "certificates"),
            ),
            Document(
                id="timeout-1",
                doc_type="Troubleshooting",
                title="Slow upstream reads",
                category="Operations",
                content="Seen java.net.SocketTimeoutException on slow reads",
                notes="",
                tags=("database",),
            ),
        ]
    )

    tls = library.smart_search("getting a tls handshake exception, certificate path building failed")
    timeout = library.smart_search("Caused by: java.net.SocketTimeoutException: Read timed out")

    assert [doc.id for doc in tls.documents] == ["tls-1"]
    assert [doc.id for doc in timeout.documents] == ["timeout-1"]
    assert [doc.id for doc in library.search("troubleshooting -tags:database")] == ["tls-1"]
