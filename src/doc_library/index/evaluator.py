"""Translation of query trees into matchers over an in-memory snapshot.

`compile_query` rewrites each node once per search: prefix and fuzzy nodes
are expanded against the snapshot's term dictionary and term statistics are
resolved up front, so scoring a document is a walk over plain matchers.
A matcher's ``score`` returns ``None`` when the document does not match.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

from rapidfuzz import process
from rapidfuzz.distance import OSA

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

if TYPE_CHECKING:
    from doc_library.index.memory import IndexedDocument, InMemorySnapshot

# Cap on dictionary terms a single prefix or fuzzy node may expand to.
MAX_EXPANSIONS = 50


class Matcher(ABC):
    @abstractmethod
    def score(self, doc: "IndexedDocument") -> float | None:
        """Score for ``doc`` or ``None`` if it does not match."""


class _NoMatch(Matcher):
    def score(self, doc: "IndexedDocument") -> float | None:
        return None


class _Bm25:
    def __init__(self, snapshot: "InMemorySnapshot", field: str) -> None:
        self.field = field
        self.k1 = snapshot.config.bm25_k1
        self.b = snapshot.config.bm25_b
        self.avg_length = snapshot.stats.avg_length(field) or 1.0
        self.doc_count = snapshot.stats.doc_count

    def idf(self, doc_freq: int) -> float:
        return math.log(1.0 + (self.doc_count - doc_freq + 0.5) / (doc_freq + 0.5))

    def tf(self, freq: int, length: int) -> float:
        norm = self.k1 * (1.0 - self.b + self.b * length / self.avg_length)
        return freq * (self.k1 + 1.0) / (freq + norm)


class _TermMatcher(Matcher):
    def __init__(self, snapshot: "InMemorySnapshot", field: str, text: str, boost: float) -> None:
        self.field = field
        self.text = text
        self.bm25 = _Bm25(snapshot, field)
        self.weight = self.bm25.idf(snapshot.stats.doc_freq(field, text)) * boost

    def score(self, doc: "IndexedDocument") -> float | None:
        indexed = doc.field(self.field)
        if indexed is None:
            return None
        freq = indexed.freq(self.text)
        if not freq:
            return None
        return self.weight * self.bm25.tf(freq, indexed.length)


class _ConstantTermsMatcher(Matcher):
    """Matches any of a fixed set of terms with a constant score."""

    def __init__(self, field: str, terms: Sequence[str], boost: float) -> None:
        self.field = field
        self.terms = tuple(terms)
        self.boost = boost

    def score(self, doc: "IndexedDocument") -> float | None:
        indexed = doc.field(self.field)
        if indexed is None:
            return None
        if any(indexed.freq(term) for term in self.terms):
            return self.boost
        return None


class _FuzzyMatcher(Matcher):
    """Best of the expanded terms, each weighted by its similarity."""

    def __init__(self, snapshot: "InMemorySnapshot", node: Fuzzy) -> None:
        self.matchers: list[tuple[_TermMatcher, float]] = []
        for term, edits in expand_fuzzy(snapshot, node):
            similarity = 1.0 - edits / max(len(node.text), len(term))
            self.matchers.append((_TermMatcher(snapshot, node.field, term, node.boost), similarity))

    def score(self, doc: "IndexedDocument") -> float | None:
        best: float | None = None
        for matcher, similarity in self.matchers:
            score = matcher.score(doc)
            if score is not None:
                score *= similarity
                if best is None or score > best:
                    best = score
        return best


class _PhraseMatcher(Matcher):
    def __init__(self, snapshot: "InMemorySnapshot", node: Phrase) -> None:
        self.node = node
        self.bm25 = _Bm25(snapshot, node.field)
        self.weight = node.boost * sum(
            self.bm25.idf(snapshot.stats.doc_freq(node.field, term)) for term in node.terms
        )

    def score(self, doc: "IndexedDocument") -> float | None:
        indexed = doc.field(self.node.field)
        if indexed is None:
            return None
        lists = [indexed.positions.get(term, ()) for term in self.node.terms]
        if not all(lists):
            return None
        freq = phrase_freq(lists, self.node.slop)
        if not freq:
            return None
        return self.weight * self.bm25.tf(freq, indexed.length)


class _DisMaxMatcher(Matcher):
    def __init__(self, children: Sequence[Matcher], tie_breaker: float, boost: float) -> None:
        self.children = tuple(children)
        self.tie_breaker = tie_breaker
        self.boost = boost

    def score(self, doc: "IndexedDocument") -> float | None:
        scores = [s for s in (child.score(doc) for child in self.children) if s is not None]
        if not scores:
            return None
        best = max(scores)
        return (best + self.tie_breaker * (sum(scores) - best)) * self.boost


class _BooleanMatcher(Matcher):
    def __init__(
        self,
        must: Sequence[Matcher],
        should: Sequence[Matcher],
        must_not: Sequence[Matcher],
        minimum_should_match: int,
        boost: float,
    ) -> None:
        self.must = tuple(must)
        self.should = tuple(should)
        self.must_not = tuple(must_not)
        self.boost = boost
        # Without MUST clauses at least one SHOULD has to match.
        self.required_should = minimum_should_match or (0 if self.must else 1)

    def score(self, doc: "IndexedDocument") -> float | None:
        if not self.must and not self.should:
            return None
        if any(matcher.score(doc) is not None for matcher in self.must_not):
            return None
        total = 0.0
        for matcher in self.must:
            score = matcher.score(doc)
            if score is None:
                return None
            total += score
        matched = 0
        for matcher in self.should:
            score = matcher.score(doc)
            if score is not None:
                matched += 1
                total += score
        if matched < self.required_should:
            return None
        return total * self.boost


def compile_query(node: QueryNode, snapshot: "InMemorySnapshot") -> Matcher:
    """Translate ``node`` into a matcher bound to ``snapshot``."""

    if isinstance(node, Term):
        return _TermMatcher(snapshot, node.field, node.text, node.boost)
    if isinstance(node, Prefix):
        terms = expand_prefix(snapshot, node)
        return _ConstantTermsMatcher(node.field, terms, node.boost) if terms else _NoMatch()
    if isinstance(node, Fuzzy):
        return _FuzzyMatcher(snapshot, node)
    if isinstance(node, Phrase):
        return _PhraseMatcher(snapshot, node)
    if isinstance(node, DisjunctionMax):
        children = [compile_query(child, snapshot) for child in node.children]
        return _DisMaxMatcher(children, node.tie_breaker, node.boost)
    if isinstance(node, Boolean):
        by_occur: dict[Occur, list[Matcher]] = {occur: [] for occur in Occur}
        for clause in node.clauses:
            by_occur[clause.occur].append(compile_query(clause.query, snapshot))
        return _BooleanMatcher(
            by_occur[Occur.MUST],
            by_occur[Occur.SHOULD],
            by_occur[Occur.MUST_NOT],
            node.minimum_should_match,
            node.boost,
        )
    raise TypeError(f"Unsupported query node: {type(node).__name__}")


def expand_prefix(snapshot: "InMemorySnapshot", node: Prefix) -> list[str]:
    matches = sorted(term for term in snapshot.stats.terms(node.field) if term.startswith(node.text))
    return matches[:MAX_EXPANSIONS]


def expand_fuzzy(snapshot: "InMemorySnapshot", node: Fuzzy) -> list[tuple[str, int]]:
    """Dictionary terms within ``max_edits`` OSA edits, closest first.

    Adjacent transpositions count as one edit, as in Lucene fuzzy queries.
    """

    candidates = sorted(snapshot.stats.terms(node.field))
    found = [
        (term, int(edits))
        for term, edits, _ in process.extract(
            node.text,
            candidates,
            scorer=OSA.distance,
            score_cutoff=node.max_edits,
            limit=None,
        )
    ]
    found.sort(key=lambda item: (item[1], item[0]))
    return found[:MAX_EXPANSIONS]


def phrase_freq(position_lists: Sequence[Sequence[int]], slop: int) -> int:
    """Count phrase occurrences whose total displacement is within ``slop``.

    Each later term is aligned to the position nearest its expected slot,
    which is exact for ``slop == 0`` and a close approximation otherwise.
    """

    count = 0
    for start in position_lists[0]:
        displacement = 0
        for offset, positions in enumerate(position_lists[1:], start=1):
            expected = start + offset
            displacement += min(abs(p - expected) for p in positions)
            if displacement > slop:
                break
        if displacement <= slop:
            count += 1
    return count
