from collections.abc import Iterator

from doc_library.analysis.analyzers import Analyzer, PerFieldAnalyzer, query_analyzer
from doc_library.analysis.synonyms import parse_synonyms
from doc_library.config import QueryBuilderConfig
from doc_library.query.tokens import (
    collect_tokens,
    fallback_tokens,
    mentions_out_of_memory,
    namespace_leaves,
)


class _BrokenAnalyzer(Analyzer):
    def tokens(self, text: str) -> Iterator[str]:
        raise RuntimeError("analysis chain unavailable")


def _analyzer() -> PerFieldAnalyzer:
    return query_analyzer(parse_synonyms(["db, database"]))


def test_tokens_are_unique_and_ordered() -> None:
    tokens = collect_tokens(_analyzer(), "Database pool database pool exhausted")

    assert tokens == ("database", "db", "pool", "exhausted")


def test_token_count_capped() -> None:
    text = " ".join(f"word{i}" for i in range(200))
    tokens = collect_tokens(_analyzer(), text)

    assert len(tokens) == 40
    assert tokens[0] == "word0"


def test_namespace_leaves_displace_the_tail() -> None:
    text = " ".join(f"word{i}" for i in range(200))
    config = QueryBuilderConfig(max_general_terms=10)
    tokens = collect_tokens(_analyzer(), text, ["com.acme.billing.InvoiceService"], config)

    assert len(tokens) == 10
    assert tokens[-2:] == ("invoiceservice", "billing")
    assert tokens[0] == "word0"


def test_namespace_leaves() -> None:
    assert namespace_leaves(["com.acme.Foo", "single"]) == ["foo", "acme", "single"]


def test_broken_analyzer_falls_back() -> None:
    analyzer = PerFieldAnalyzer(_BrokenAnalyzer(), {})
    tokens = collect_tokens(analyzer, "Pump is leaking at the seal, pump OK")

    assert tokens == ("pump", "leaking", "the", "seal")


def test_fallback_tokens_respects_limit() -> None:
    assert fallback_tokens("alpha beta gamma delta", 2) == ["alpha", "beta"]


def test_out_of_memory_detection() -> None:
    assert mentions_out_of_memory("java.lang.outofmemoryerror: java heap space", ())
    assert mentions_out_of_memory("gc overhead limit exceeded", ())
    assert mentions_out_of_memory("the service died", ("oome",))
    assert not mentions_out_of_memory("at shutdown", ("shutdown",))
