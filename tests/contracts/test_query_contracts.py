from doc_library.query.builder import SmartQueryBuilder
from doc_library.query.preprocess import preprocess_for_search

_BUILDER = SmartQueryBuilder.with_synonyms()

INPUTS = [
    "NullPointerException at startup",
    "OutOfMemoryError: Java heap space",
    "How do I replace the impeller on pump 3?",
    "Getting a TLS handshake exception connecting to the database, certificate path building failed",
    "GET /orders returned 502 from com.acme.gateway.ProxyHandler during boot",
    "",
]


def _huge_trace() -> str:
    lines = ["java.lang.RuntimeException: batch failed"]
    for i in range(5_000):
        lines.append(f"\tat com.acme.batch.Step{i}.execute(Step{i}.java:{i})")
        lines.append(f"Caused by: com.acme.batch.Step{i}Exception: step {i} failed")
    return "\n".join(lines)


def test_build_is_deterministic() -> None:
    for text in INPUTS:
        first = _BUILDER.build(text)
        second = _BUILDER.build(text)

        assert first.root == second.root
        assert first.intent is second.intent


def test_builder_output_bounds_on_huge_input() -> None:
    text = _huge_trace()
    built = _BUILDER.build(text)
    preprocessed = preprocess_for_search(text)

    assert len(preprocessed) <= 60_000
    assert sum(1 for line in preprocessed.splitlines() if line.lstrip().startswith("at ")) <= 24
    assert len(built.tokens) <= 40
    assert built.root.must_count == 1
    assert built.signals.deepest_cause == "com.acme.batch.Step4999Exception: step 4999 failed"


def test_min_should_match_never_exceeds_should_clauses() -> None:
    for text in INPUTS:
        root = _BUILDER.build(text).root

        assert root.minimum_should_match <= root.should_count
