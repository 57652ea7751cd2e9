from doc_library.index.evaluator import expand_fuzzy, phrase_freq
from doc_library.index.memory import InMemoryDocumentIndex
from doc_library.query.nodes import (
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
from doc_library.types import Document


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


def _index(*docs: Document) -> InMemoryDocumentIndex:
    index = InMemoryDocumentIndex()
    for doc in docs:
        index.add_document(doc)
    index.commit()
    return index


def _ids(index: InMemoryDocumentIndex, query, limit: int = 10) -> list[str]:
    return [hit.document.id for hit in index.open_snapshot().search(query, limit)]


def test_changes_visible_only_after_commit() -> None:
    index = InMemoryDocumentIndex()
    before = index.open_snapshot()
    index.add_document(_doc("a", "Replace pump seal"))

    assert index.open_snapshot().num_docs == 0
    index.commit()
    assert index.open_snapshot().num_docs == 1
    assert before.num_docs == 0


def test_add_with_existing_id_replaces() -> None:
    index = _index(_doc("a", "Old title"))
    index.add_document(_doc("a", "New title"))
    index.commit()

    snapshot = index.open_snapshot()
    assert snapshot.num_docs == 1
    assert snapshot.get("a").title == "New title"


def test_delete_and_rollback() -> None:
    index = _index(_doc("a", "Pump"), _doc("b", "Valve"))

    assert index.delete_document("a")
    assert not index.delete_document("missing")
    index.rollback()
    index.commit()
    assert index.open_snapshot().get("a") is not None

    index.delete_document("a")
    index.commit()
    assert index.open_snapshot().get("a") is None


def test_term_match_and_ranking() -> None:
    index = _index(
        _doc("a", "Pump maintenance", "check the pump"),
        _doc("b", "Valve maintenance", "check the valve"),
        _doc("c", "Pump pump pump", "pump pump"),
    )

    assert _ids(index, Term("title", "pump")) == ["c", "a"]
    assert _ids(index, Term("title", "missing")) == []


def test_keyword_fields_are_exact() -> None:
    index = _index(_doc("a", "Pump", doc_type="Troubleshooting"), _doc("b", "Pump", doc_type="HowTo"))

    assert _ids(index, Term("docType", "Troubleshooting")) == ["a"]
    assert _ids(index, Term("docType", "troubleshooting")) == []
    assert _ids(index, Term("docType_text", "troubleshooting")) == ["a"]


def test_prefix_and_fuzzy() -> None:
    index = _index(_doc("a", "Calibration of sensors"), _doc("b", "Replace valve"))

    assert _ids(index, Prefix("title", "calib")) == ["a"]
    assert _ids(index, Fuzzy("title", "sensor", 1)) == ["a"]
    assert _ids(index, Fuzzy("title", "sonsers", 1)) == []


def test_phrase_with_slop() -> None:
    index = _index(_doc("a", "", "java heap space exhausted"), _doc("b", "", "java uses heap and space"))

    assert _ids(index, Phrase("content", ("java", "heap", "space"))) == ["a"]
    assert set(_ids(index, Phrase("content", ("heap", "space"), slop=1))) == {"a", "b"}


def test_boolean_must_and_min_should_match() -> None:
    index = _index(
        _doc("a", "Pump seal leak", tags=("pump",)),
        _doc("b", "Pump overview"),
        _doc("c", "Seal kit"),
    )
    must = Boolean(
        (
            Clause(Term("title", "pump"), Occur.MUST),
            Clause(Term("title", "seal"), Occur.SHOULD),
        )
    )
    two_of = Boolean(
        (
            Clause(Term("title", "pump"), Occur.SHOULD),
            Clause(Term("title", "seal"), Occur.SHOULD),
        ),
        minimum_should_match=2,
    )
    any_of = Boolean(two_of.clauses)

    assert _ids(index, must) == ["a", "b"]
    assert _ids(index, two_of) == ["a"]
    assert set(_ids(index, any_of)) == {"a", "b", "c"}
    assert _ids(index, MATCH_NOTHING) == []


def test_must_not_excludes_matching_documents() -> None:
    index = _index(
        _doc("a", "Pump seal leak"),
        _doc("b", "Pump overview"),
        _doc("c", "Seal kit"),
    )
    without_seal = Boolean(
        (
            Clause(Term("title", "pump"), Occur.SHOULD),
            Clause(Term("title", "seal"), Occur.MUST_NOT),
        )
    )
    only_negative = Boolean((Clause(Term("title", "seal"), Occur.MUST_NOT),))

    assert _ids(index, without_seal) == ["b"]
    assert _ids(index, only_negative) == []


def test_dismax_takes_best_field() -> None:
    index = _index(_doc("a", "pump", "valve"), _doc("b", "valve", "pump"))
    query = DisjunctionMax((Term("title", "pump", 3.0), Term("content", "pump")), 0.1)

    assert _ids(index, query) == ["a", "b"]


def test_offset_and_limit_paging() -> None:
    index = _index(*[_doc(f"d{i}", "pump " * (i + 1)) for i in range(5)])
    snapshot = index.open_snapshot()

    first = snapshot.search(Term("title", "pump"), limit=2)
    second = snapshot.search(Term("title", "pump"), limit=2, offset=2)

    assert [hit.rank for hit in first] == [1, 2]
    assert [hit.rank for hit in second] == [3, 4]
    assert {hit.document.id for hit in first}.isdisjoint(hit.document.id for hit in second)
    assert snapshot.search(Term("title", "pump"), limit=0) == []


def test_fuzzy_expansion_counts_transpositions_as_one_edit() -> None:
    index = _index(_doc("a", "sensor"), _doc("b", "snesor"), _doc("c", "censer"), _doc("d", "sensors"))
    snapshot = index.open_snapshot()

    assert expand_fuzzy(snapshot, Fuzzy("title", "sensor", 1)) == [("sensor", 0), ("sensors", 1), ("snesor", 1)]
    assert expand_fuzzy(snapshot, Fuzzy("title", "sensor", 0)) == [("sensor", 0)]


def test_phrase_freq_respects_slop() -> None:
    assert phrase_freq([[0, 10], [1, 12]], 0) == 1
    assert phrase_freq([[0, 10], [1, 12]], 1) == 2
