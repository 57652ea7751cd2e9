import pytest

from doc_library.analysis.analyzers import index_analyzer
from doc_library.errors import StructuredQueryError
from doc_library.index.structured import DEFAULT_FIELDS, StructuredQueryParser
from doc_library.query.nodes import Boolean, Clause, Fuzzy, Occur, Phrase, Prefix, Term

_PARSER = StructuredQueryParser(index_analyzer())


def test_field_term_is_analyzed() -> None:
    assert _PARSER.parse("title:Spring") == Term("title", "spring")
    assert _PARSER.parse("docType:HowTo") == Term("docType", "HowTo")


def test_and_makes_both_sides_required() -> None:
    node = _PARSER.parse("category:Programming AND tags:spring")

    assert node == Boolean(
        (
            Clause(Term("category", "programming"), Occur.MUST),
            Clause(Term("tags", "spring"), Occur.MUST),
        )
    )


def test_or_and_plus() -> None:
    node = _PARSER.parse("tags:java OR +tags:security")

    assert node == Boolean(
        (
            Clause(Term("tags", "java"), Occur.SHOULD),
            Clause(Term("tags", "security"), Occur.MUST),
        )
    )


def test_phrase_prefix_fuzzy_and_boost() -> None:
    assert _PARSER.parse('title:"spring boot"~2') == Phrase("title", ("spring", "boot"), slop=2)
    assert _PARSER.parse("content:configur*") == Prefix("content", "configur")
    assert _PARSER.parse("notes:calbration~1") == Fuzzy("notes", "calbration", 1)
    assert _PARSER.parse("notes:calbration~") == Fuzzy("notes", "calbration", 2)
    assert _PARSER.parse("title:pump^2") == Term("title", "pump", 2.0)


def test_field_group() -> None:
    node = _PARSER.parse("title:(pump valve)^2")

    assert node == Boolean(
        (
            Clause(Term("title", "pump"), Occur.SHOULD),
            Clause(Term("title", "valve"), Occur.SHOULD),
        ),
        boost=2.0,
    )


def test_bare_term_searches_default_fields() -> None:
    node = _PARSER.parse("pump")

    assert isinstance(node, Boolean)
    assert [clause.query.field for clause in node.clauses] == list(DEFAULT_FIELDS)
    boosts = {clause.query.field: clause.query.boost for clause in node.clauses}
    assert boosts["title"] == 3.0
    assert boosts["catchAll"] == 0.5
    assert Term("docType", "pump") == node.clauses[0].query


def test_negation_prohibits_the_next_clause() -> None:
    node = _PARSER.parse("pump -title:valve")

    assert isinstance(node, Boolean)
    assert [clause.occur for clause in node.clauses] == [Occur.SHOULD, Occur.MUST_NOT]
    assert node.clauses[1].query == Term("title", "valve")


def test_and_not_keeps_the_prohibition() -> None:
    node = _PARSER.parse("tags:java AND NOT tags:legacy")

    assert node == Boolean(
        (
            Clause(Term("tags", "java"), Occur.MUST),
            Clause(Term("tags", "legacy"), Occur.MUST_NOT),
        )
    )


def test_bang_negates_and_hyphenated_words_stay_words() -> None:
    assert _PARSER.parse("!title:pump") == Boolean((Clause(Term("title", "pump"), Occur.MUST_NOT),))
    assert _PARSER.parse("docType:How-To") == Term("docType", "How-To")


@pytest.mark.parametrize(
    "query",
    [
        "",
        "   ",
        "pump NOT",
        "+-pump",
        "title:-pump",
        "AND pump",
        "pump AND",
        "pump OR OR valve",
        "title:(pump",
        "pump)",
        "title:",
    ],
)
def test_malformed_queries_raise(query: str) -> None:
    with pytest.raises(StructuredQueryError):
        _PARSER.parse(query)


def test_error_reports_position() -> None:
    with pytest.raises(StructuredQueryError) as excinfo:
        _PARSER.parse("title:pump OR OR valve")

    assert excinfo.value.position == 14
    assert "position 14" in str(excinfo.value)
