from collections.abc import Iterator

import pytest

from doc_library.query.builder import (
    EXCEPTION_FIELDS,
    SmartQueryBuilder,
    expand_exceptions,
    minimum_should_match,
)
from doc_library.query.nodes import (
    Boolean,
    Clause,
    DisjunctionMax,
    Occur,
    Phrase,
    Prefix,
    QueryNode,
    Term,
    render_query,
)
from doc_library.types import Intent

_BUILDER = SmartQueryBuilder.with_synonyms()


def _walk(node: QueryNode) -> Iterator[QueryNode]:
    yield node
    if isinstance(node, DisjunctionMax):
        for child in node.children:
            yield from _walk(child)
    elif isinstance(node, Boolean):
        for clause in node.clauses:
            yield from _walk(clause.query)


def _must_terms(root: Boolean) -> set[tuple[str, str]]:
    found = set()
    for clause in root.clauses:
        if clause.occur is Occur.MUST:
            for node in _walk(clause.query):
                if isinstance(node, Term):
                    found.add((node.field, node.text))
    return found


def _has_oome_branch(root: Boolean) -> bool:
    return any(
        isinstance(node, Phrase) and node.terms == ("java", "heap", "space")
        for clause in root.clauses
        if clause.occur is Occur.MUST
        for node in _walk(clause.query)
    )


def test_min_should_match_rules() -> None:
    assert minimum_should_match(has_must=True, has_bias=True, signal_groups=3) == 0
    assert minimum_should_match(has_must=False, has_bias=True, signal_groups=1) == 2
    assert minimum_should_match(has_must=False, has_bias=False, signal_groups=1) == 1
    assert minimum_should_match(has_must=False, has_bias=True, signal_groups=0) is None


def test_boolean_rejects_unreachable_min_should_match() -> None:
    with pytest.raises(ValueError):
        Boolean((Clause(Term("title", "pump"), Occur.SHOULD),), minimum_should_match=2)


def test_expand_exceptions_dedupes_and_caps() -> None:
    expanded = expand_exceptions(["NullPointerException", "SSLHandshakeException", "NullPointerException"])

    assert expanded[:4] == ("nullpointerexception", "npe", "null", "pointer")
    assert "truststore" in expanded
    assert len(expanded) == len(set(expanded))
    assert len(expand_exceptions([f"Custom{i}Exception" for i in range(50)])) == 24


def test_npe_at_startup_gates_on_exception_terms() -> None:
    built = _BUILDER.build("NullPointerException at startup")

    assert built.intent is Intent.TROUBLESHOOT
    assert built.root.minimum_should_match == 0
    assert built.root.must_count == 1
    must_terms = _must_terms(built.root)
    for field_name in EXCEPTION_FIELDS:
        assert (field_name, "null") in must_terms
        assert (field_name, "pointer") in must_terms
        assert (field_name, "nullpointerexception") in must_terms
    assert {field_name for field_name, _ in must_terms} == set(EXCEPTION_FIELDS)


def test_out_of_memory_adds_must_branch() -> None:
    built = _BUILDER.build("OutOfMemoryError: Java heap space")

    assert _has_oome_branch(built.root)
    assert built.root.must_count == 2


def test_shutdown_alone_has_no_must() -> None:
    built = _BUILDER.build("at shutdown")

    assert not _has_oome_branch(built.root)
    assert built.root.must_count == 0
    assert built.intent is Intent.UNKNOWN
    assert built.root.minimum_should_match == 1


def test_howto_bias_never_admits_alone() -> None:
    built = _BUILDER.build("How do I set it up?")

    assert built.intent is Intent.HOWTO
    assert built.root.must_count == 0
    assert built.root.should_count == 2
    assert built.root.minimum_should_match == 2
    bias = built.root.clauses[0].query
    assert isinstance(bias, DisjunctionMax)
    assert Term("docType", "HowTo") in bias.children


def test_bias_without_signals_is_rejected() -> None:
    built = _BUILDER.build("Exception error failed")

    assert built.intent is Intent.TROUBLESHOOT
    assert built.rejected
    assert built.root.clauses == ()


def test_blank_input_is_rejected() -> None:
    assert _BUILDER.build("   \n ").rejected
    assert _BUILDER.build(None).intent is Intent.UNKNOWN


def test_tls_description_gates_on_alias_terms() -> None:
    text = (
        "Getting a TLS handshake exception connecting to the database, "
        "certificate path building failed"
    )
    built = _BUILDER.build(text)

    assert built.intent is Intent.TROUBLESHOOT
    assert built.signals.exception_names == ("SSLHandshakeException",)
    must_texts = {text for _, text in _must_terms(built.root)}
    assert {"ssl", "pkix", "certificate", "truststore", "handshake", "tls"} <= must_texts


def test_http_codes_and_phases_become_should_groups() -> None:
    built = _BUILDER.build("service returns 503 on boot")

    assert built.root.must_count == 0
    assert built.root.should_count == 3
    assert built.root.minimum_should_match == 1
    assert "503" in built.signals.http_codes
    assert built.signals.phases == ("boot",)


def test_general_clause_uses_variants_and_boosts() -> None:
    built = _BUILDER.build("calibrate flowmeter")
    nodes = list(_walk(built.root))

    assert Term("title", "flowmeter", 3.0) in nodes
    assert any(isinstance(node, Prefix) and node.text == "flowmeter" for node in nodes)


def test_render_query_is_stable() -> None:
    first = render_query(_BUILDER.build("NullPointerException at startup").root)
    second = render_query(_BUILDER.build("NullPointerException at startup").root)

    assert first == second
    assert "+(" in first
    assert "docType:Troubleshooting" in first
