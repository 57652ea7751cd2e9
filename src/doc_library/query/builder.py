"""Intent-aware query construction from free-form text.

Usage::

    builder = SmartQueryBuilder.with_synonyms()
    built = builder.build(user_text)
    hits = index.open_snapshot().search(built.root, limit=10)

The builder is immutable after construction and holds no per-call state, so
one instance can serve any number of concurrent callers.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from doc_library.analysis.analyzers import PerFieldAnalyzer, build_stopwords, query_analyzer
from doc_library.analysis.synonyms import load_synonyms
from doc_library.config import QueryBuilderConfig
from doc_library.query.intent import detect_intent
from doc_library.query.nodes import (
    MATCH_NOTHING,
    Boolean,
    Clause,
    DisjunctionMax,
    Fuzzy,
    Occur,
    Phrase,
    Prefix,
    QueryNode,
    Term,
)
from doc_library.query.preprocess import preprocess_for_search
from doc_library.query.signals import extract_signals
from doc_library.query.tokens import OOME_TOKENS, collect_tokens, mentions_out_of_memory
from doc_library.types import Intent, SignalSet

DOC_TYPE_FIELD = "docType"
TROUBLESHOOT_DOC_TYPE = "Troubleshooting"
HOWTO_DOC_TYPES: tuple[str, ...] = (
    "HowTo",
    "Installation",
    "Calibration",
    "Maintenance",
    "Playbook",
    "Replacement",
)

EXCEPTION_FIELDS: tuple[str, ...] = ("title", "content", "tags", "notes")
OOME_FIELDS: tuple[str, ...] = ("title", "content", "notes", "tags")
SIGNAL_FIELDS: tuple[str, ...] = ("content", "notes", "title", "tags")

OOME_PHRASES: tuple[tuple[str, ...], ...] = (
    ("java", "heap", "space"),
    ("gc", "overhead", "limit", "exceeded"),
)

# Extra terms for exception types whose documents rarely repeat the class
# name. Keys are lowercase; the type's own lowercase name is always added.
EXCEPTION_ALIASES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "nullpointerexception": ("npe", "null", "pointer"),
        "sslhandshakeexception": ("ssl", "pkix", "certificate", "truststore", "handshake", "tls"),
        "mismatchedinputexception": ("jackson", "json", "deserialize", "deserialization"),
    }
)

HOWTO_BOOSTS: Mapping[str, float] = MappingProxyType(
    {
        "title": 3.0,
        "category": 2.0,
        "tags": 1.5,
        "content": 1.0,
        "notes": 0.75,
        "catchAll": 0.5,
    }
)
DEFAULT_BOOSTS: Mapping[str, float] = MappingProxyType(
    {
        "title": 3.0,
        "content": 1.5,
        "tags": 1.25,
        "category": 1.25,
        "notes": 0.75,
        "catchAll": 0.5,
    }
)

PREFIX_MIN_LENGTH = 4
FUZZY_MIN_LENGTH = 5
PREFIX_WEIGHT = 0.8
FUZZY_WEIGHT = 0.7


@dataclass(frozen=True, slots=True)
class BuiltQuery:
    """The query tree for one input plus what it was built from."""

    root: Boolean
    intent: Intent
    signals: SignalSet = field(default_factory=SignalSet)
    tokens: tuple[str, ...] = ()

    @property
    def rejected(self) -> bool:
        """True when the input carried nothing worth searching for."""
        return not self.root.clauses


def boost_profile(intent: Intent) -> Mapping[str, float]:
    return HOWTO_BOOSTS if intent is Intent.HOWTO else DEFAULT_BOOSTS


def expand_exceptions(names: Iterable[str], limit: int = 24) -> tuple[str, ...]:
    """Lowercase names followed by their aliases, capped at ``limit`` terms."""

    out: dict[str, None] = {}
    for name in names:
        key = name.lower()
        out.setdefault(key)
        for alias in EXCEPTION_ALIASES.get(key, ()):
            out.setdefault(alias)
    return tuple(out)[:limit]


def term_variants(field_name: str, text: str, boost: float = 1.0) -> list[QueryNode]:
    """Exact match, plus prefix for 4+ chars and one-edit fuzzy for 5+ chars."""

    variants: list[QueryNode] = [Term(field_name, text, boost)]
    if len(text) >= PREFIX_MIN_LENGTH:
        variants.append(Prefix(field_name, text, boost * PREFIX_WEIGHT))
    if len(text) >= FUZZY_MIN_LENGTH:
        variants.append(Fuzzy(field_name, text, 1, boost * FUZZY_WEIGHT))
    return variants


def best_of_fields(terms: Sequence[str], fields: Sequence[str], tie_breaker: float) -> DisjunctionMax:
    """Per field the best variant of any term; across fields the best field.

    Variants here are unweighted: prefix and fuzzy matches of an identifier
    count as much as the exact term.
    """

    per_field: list[QueryNode] = []
    for field_name in fields:
        variants: list[QueryNode] = []
        for term in terms:
            token = term.lower()
            variants.append(Term(field_name, token))
            if len(token) >= PREFIX_MIN_LENGTH:
                variants.append(Prefix(field_name, token))
            if len(token) >= FUZZY_MIN_LENGTH:
                variants.append(Fuzzy(field_name, token, 1))
        per_field.append(DisjunctionMax(tuple(variants), 0.0))
    return DisjunctionMax(tuple(per_field), tie_breaker)


def weighted_fields(terms: Sequence[str], boosts: Mapping[str, float], tie_breaker: float) -> DisjunctionMax:
    per_field: list[QueryNode] = []
    for field_name, boost in boosts.items():
        variants: list[QueryNode] = []
        for term in terms:
            variants.extend(term_variants(field_name, term.lower(), boost))
        per_field.append(DisjunctionMax(tuple(variants), 0.0))
    return DisjunctionMax(tuple(per_field), tie_breaker)


def out_of_memory_query(fields: Sequence[str], tie_breaker: float) -> DisjunctionMax:
    per_field: list[QueryNode] = []
    for field_name in fields:
        parts: list[QueryNode] = []
        for token in OOME_TOKENS:
            parts.append(Term(field_name, token))
            parts.append(Prefix(field_name, token))
        for phrase in OOME_PHRASES:
            parts.append(Phrase(field_name, phrase, slop=1))
        per_field.append(DisjunctionMax(tuple(parts), 0.0))
    return DisjunctionMax(tuple(per_field), tie_breaker)


def doc_type_bias(intent: Intent) -> QueryNode | None:
    if intent is Intent.TROUBLESHOOT:
        return Term(DOC_TYPE_FIELD, TROUBLESHOOT_DOC_TYPE)
    if intent is Intent.HOWTO:
        return DisjunctionMax(tuple(Term(DOC_TYPE_FIELD, value) for value in HOWTO_DOC_TYPES), 0.0)
    return None


def minimum_should_match(*, has_must: bool, has_bias: bool, signal_groups: int) -> int | None:
    """Admission rule for the root query.

    Returns ``None`` when nothing discriminative was found and the query must
    reject every document, rather than list everything of the biased type.
    """

    if has_must:
        return 0
    if signal_groups == 0:
        return None
    return 2 if has_bias else 1


class SmartQueryBuilder:
    """Builds intent-aware query trees from free text or stack traces."""

    def __init__(self, analyzer: PerFieldAnalyzer, config: QueryBuilderConfig | None = None) -> None:
        if analyzer is None:
            raise ValueError("analyzer is required")
        self.analyzer = analyzer
        self.config = config or QueryBuilderConfig()

    @classmethod
    def with_synonyms(
        cls,
        synonyms_path: str | Path | None = None,
        config: QueryBuilderConfig | None = None,
    ) -> "SmartQueryBuilder":
        """Builder whose text fields expand synonyms and drop stopwords.

        Raises `SynonymLoadError` when the synonym resource is unreadable.
        """

        synonyms = load_synonyms(synonyms_path)
        return cls(query_analyzer(synonyms, build_stopwords()), config)

    def build(self, raw_input: str | None) -> BuiltQuery:
        if raw_input is None or not raw_input.strip():
            return BuiltQuery(root=MATCH_NOTHING, intent=Intent.UNKNOWN)

        cfg = self.config
        pre = preprocess_for_search(raw_input, cfg)
        norm = pre.lower()
        intent = detect_intent(norm)

        signals = extract_signals(raw_input, norm)
        tokens = collect_tokens(self.analyzer, pre, signals.namespaces, cfg)
        oome = mentions_out_of_memory(norm, tokens)

        clauses: list[Clause] = []
        has_must = False

        bias = doc_type_bias(intent)
        if bias is not None:
            clauses.append(Clause(bias, Occur.SHOULD))

        if signals.exception_names:
            terms = expand_exceptions(signals.exception_names, cfg.max_alias_terms)
            clauses.append(
                Clause(best_of_fields(terms, EXCEPTION_FIELDS, cfg.field_tie_breaker), Occur.MUST)
            )
            has_must = True

        if oome:
            clauses.append(Clause(out_of_memory_query(OOME_FIELDS, cfg.field_tie_breaker), Occur.MUST))
            has_must = True

        signal_groups = 0
        if signals.http_codes:
            clauses.append(Clause(best_of_fields(signals.http_codes, SIGNAL_FIELDS, 0.0), Occur.SHOULD))
            signal_groups += 1
        if signals.phases:
            clauses.append(Clause(best_of_fields(signals.phases, SIGNAL_FIELDS, 0.0), Occur.SHOULD))
            signal_groups += 1
        if tokens:
            clauses.append(
                Clause(
                    weighted_fields(tokens, boost_profile(intent), cfg.field_tie_breaker),
                    Occur.SHOULD,
                )
            )
            signal_groups += 1

        msm = minimum_should_match(has_must=has_must, has_bias=bias is not None, signal_groups=signal_groups)
        root = MATCH_NOTHING if msm is None else Boolean(tuple(clauses), msm)
        return BuiltQuery(root=root, intent=intent, signals=signals, tokens=tokens)
