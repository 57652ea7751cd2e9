"""Engine-neutral query tree.

The tree is a closed set of frozen dataclasses. Search engines receive it as
is and translate it into their own representation; nothing here knows how a
node is scored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class Occur(str, Enum):
    MUST = "MUST"
    SHOULD = "SHOULD"
    MUST_NOT = "MUST_NOT"


@dataclass(frozen=True, slots=True)
class Term:
    field: str
    text: str
    boost: float = 1.0


@dataclass(frozen=True, slots=True)
class Prefix:
    field: str
    text: str
    boost: float = 1.0


@dataclass(frozen=True, slots=True)
class Fuzzy:
    field: str
    text: str
    max_edits: int = 1
    boost: float = 1.0

    def __post_init__(self) -> None:
        if not 0 <= self.max_edits <= 2:
            raise ValueError("max_edits must be between 0 and 2")


@dataclass(frozen=True, slots=True)
class Phrase:
    field: str
    terms: tuple[str, ...]
    slop: int = 0
    boost: float = 1.0

    def __post_init__(self) -> None:
        if not self.terms:
            raise ValueError("a phrase needs at least one term")
        if self.slop < 0:
            raise ValueError("slop must be non-negative")


@dataclass(frozen=True, slots=True)
class DisjunctionMax:
    """Best-of combiner: max child score plus ``tie_breaker`` times the rest."""

    children: tuple["QueryNode", ...]
    tie_breaker: float = 0.0
    boost: float = 1.0


@dataclass(frozen=True, slots=True)
class Clause:
    query: "QueryNode"
    occur: Occur


@dataclass(frozen=True, slots=True)
class Boolean:
    """Conjunction/disjunction with a minimum number of matching SHOULDs.

    A document is admitted when every MUST clause matches, no MUST_NOT clause
    matches and at least ``minimum_should_match`` SHOULD clauses match.
    Without MUST clauses and with ``minimum_should_match == 0`` one SHOULD
    match is still required, so a Boolean without clauses, or with only
    MUST_NOT clauses, matches nothing.
    """

    clauses: tuple[Clause, ...] = ()
    minimum_should_match: int = 0
    boost: float = 1.0

    def __post_init__(self) -> None:
        if self.minimum_should_match < 0:
            raise ValueError("minimum_should_match must be non-negative")
        if self.minimum_should_match > self.should_count:
            raise ValueError(
                f"minimum_should_match={self.minimum_should_match} exceeds "
                f"{self.should_count} SHOULD clauses"
            )

    @property
    def should_count(self) -> int:
        return sum(1 for clause in self.clauses if clause.occur is Occur.SHOULD)

    @property
    def must_count(self) -> int:
        return sum(1 for clause in self.clauses if clause.occur is Occur.MUST)

    @property
    def must_not_count(self) -> int:
        return sum(1 for clause in self.clauses if clause.occur is Occur.MUST_NOT)


QueryNode = Union[Term, Prefix, Fuzzy, Phrase, DisjunctionMax, Boolean]

MATCH_NOTHING = Boolean()

_OCCUR_PREFIX = {Occur.MUST: "+", Occur.SHOULD: "", Occur.MUST_NOT: "-"}


def render_query(node: QueryNode) -> str:
    """Render a node in a Lucene-like syntax for logs and traces."""

    if isinstance(node, Term):
        text = f"{node.field}:{node.text}"
    elif isinstance(node, Prefix):
        text = f"{node.field}:{node.text}*"
    elif isinstance(node, Fuzzy):
        text = f"{node.field}:{node.text}~{node.max_edits}"
    elif isinstance(node, Phrase):
        text = f'{node.field}:"{" ".join(node.terms)}"'
        if node.slop:
            text += f"~{node.slop}"
    elif isinstance(node, DisjunctionMax):
        inner = " | ".join(render_query(child) for child in node.children)
        text = f"({inner})"
        if node.tie_breaker:
            text += f"~{node.tie_breaker:g}"
    elif isinstance(node, Boolean):
        parts = []
        for clause in node.clauses:
            prefix = _OCCUR_PREFIX[clause.occur]
            parts.append(prefix + render_query(clause.query))
        text = f"({' '.join(parts)})"
        if node.minimum_should_match:
            text += f"~{node.minimum_should_match}"
    else:
        raise TypeError(f"Unknown query node: {type(node).__name__}")

    if node.boost != 1.0:
        text += f"^{node.boost:g}"
    return text
