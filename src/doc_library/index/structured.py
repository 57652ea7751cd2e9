"""Parser for the structured (field-qualified) query syntax.

Supported subset of the classic Lucene syntax::

    title:"spring boot" AND category:Programming
    tags:java OR tags:security
    content:configure*  notes:calbration~1  +title:sensor  title:(pump valve)^2

Bare terms search every default field. Clauses are optional by default;
``AND`` makes both neighbours required and ``+`` makes one required.
``NOT``, ``-`` and ``!`` prohibit the clause that follows::

    pump -title:valve    tags:java AND NOT tags:legacy
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from doc_library.analysis.analyzers import PerFieldAnalyzer
from doc_library.errors import StructuredQueryError
from doc_library.query.nodes import (
    MATCH_NOTHING,
    Boolean,
    Clause,
    Fuzzy,
    Occur,
    Phrase,
    Prefix,
    QueryNode,
    Term,
)

DEFAULT_FIELDS: Mapping[str, float] = {
    "docType": 1.0,
    "title": 3.0,
    "category": 2.0,
    "content": 1.0,
    "notes": 1.0,
    "tags": 1.0,
    "relatedTo": 1.0,
    "catchAll": 0.5,
}

_BOOST = r"\d+(?:\.\d+)?"
_LEXER = re.compile(
    rf"""
      (?P<ws>\s+)
    | (?P<lparen>\()
    | (?P<rparen>\))(?:\^(?P<group_boost>{_BOOST}))?
    | (?P<and>AND\b|&&)
    | (?P<or>OR\b|\|\|)
    | (?P<not>NOT\b|-|!)
    | (?P<plus>\+)
    | "(?P<phrase>[^"]*)"(?:~(?P<slop>\d+))?(?:\^(?P<phrase_boost>{_BOOST}))?
    | (?P<field>[A-Za-z_][\w.]*):
    | (?P<word>[^\s()"+:^~*]+)(?P<wildcard>\*)?(?:(?P<fuzzy>~)(?P<edits>\d)?)?(?:\^(?P<word_boost>{_BOOST}))?
    """,
    re.VERBOSE,
)


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    pos: int
    groups: Mapping[str, str | None]


def _lex(query: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(query):
        match = _LEXER.match(query, pos)
        if match is None:
            raise StructuredQueryError(f"Unexpected character {query[pos]!r}", query=query, position=pos)
        kind = match.lastgroup if match.lastgroup in _KINDS else _kind_of(match)
        if kind != "ws":
            tokens.append(_Token(kind=kind, pos=pos, groups=match.groupdict()))
        pos = match.end()
    return tokens


_KINDS = frozenset({"ws", "lparen", "rparen", "and", "or", "not", "plus", "phrase", "field", "word"})
_MODIFIERS: Mapping[str, Occur] = {"plus": Occur.MUST, "not": Occur.MUST_NOT}


def _kind_of(match: re.Match[str]) -> str:
    # lastgroup points at a trailing modifier group when one is present.
    for kind in ("rparen", "phrase", "word"):
        if match.group(kind) is not None:
            return kind
    raise AssertionError("lexer produced an unnamed token")


class StructuredQueryParser:
    """Turns a query string into a query tree, analyzing terms per field."""

    def __init__(
        self,
        analyzer: PerFieldAnalyzer,
        default_fields: Mapping[str, float] | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.default_fields = dict(default_fields or DEFAULT_FIELDS)

    def parse(self, query: str) -> QueryNode:
        if not query or not query.strip():
            raise StructuredQueryError("Query is empty", query=query or "")
        state = _ParseState(query, _lex(query))
        node = self._sequence(state, field=None)
        if state.peek() is not None:
            token = state.peek()
            raise StructuredQueryError("Unbalanced ')'", query=query, position=token.pos)
        return node if node is not None else MATCH_NOTHING

    def _sequence(self, state: "_ParseState", field: str | None) -> QueryNode | None:
        items: list[list[Any]] = []  # [node, occur]
        pending: str | None = None

        while True:
            token = state.peek()
            if token is None or token.kind == "rparen":
                break
            if token.kind in ("and", "or"):
                if not items or pending is not None:
                    raise StructuredQueryError(
                        f"Operator {token.kind.upper()} needs a clause on both sides",
                        query=state.query,
                        position=token.pos,
                    )
                pending = token.kind
                state.advance()
                continue

            node, occur = self._clause(state, field)
            if pending == "and":
                if items and items[-1][1] is Occur.SHOULD:
                    items[-1][1] = Occur.MUST
                if occur is Occur.SHOULD:
                    occur = Occur.MUST
            pending = None
            items.append([node, occur])

        if pending is not None:
            raise StructuredQueryError("Query ends with an operator", query=state.query)

        kept = [(node, occur) for node, occur in items if node is not None]
        if not kept:
            return None
        if len(kept) == 1 and kept[0][1] is Occur.SHOULD:
            return kept[0][0]
        return Boolean(tuple(Clause(node, occur) for node, occur in kept))

    def _clause(self, state: "_ParseState", field: str | None) -> tuple[QueryNode | None, Occur]:
        occur = Occur.SHOULD
        token = state.advance()
        if token.kind in _MODIFIERS:
            occur = _MODIFIERS[token.kind]
            token = state.expect_clause_start()

        if token.kind == "field":
            if field is not None:
                raise StructuredQueryError("Nested field qualifier", query=state.query, position=token.pos)
            field = token.groups["field"]
            token = state.expect_clause_start()
            if token.kind == "field" or token.kind in _MODIFIERS:
                raise StructuredQueryError("Field qualifier without a value", query=state.query, position=token.pos)

        if token.kind == "lparen":
            node = self._sequence(state, field)
            closing = state.advance_or_none()
            if closing is None or closing.kind != "rparen":
                raise StructuredQueryError("Missing ')'", query=state.query, position=token.pos)
            if node is not None and closing.groups["group_boost"]:
                node = _boosted(node, float(closing.groups["group_boost"]))
            return node, occur

        if token.kind == "phrase":
            node = self._per_field(field, lambda f: self._phrase_node(f, token.groups))
            if node is not None and token.groups["phrase_boost"]:
                node = _boosted(node, float(token.groups["phrase_boost"]))
            return node, occur

        if token.kind == "word":
            node = self._per_field(field, lambda f: self._word_node(f, token.groups))
            if node is not None and token.groups["word_boost"]:
                node = _boosted(node, float(token.groups["word_boost"]))
            return node, occur

        raise StructuredQueryError(f"Unexpected {token.kind!r}", query=state.query, position=token.pos)

    def _per_field(
        self, field: str | None, build: Callable[[str], QueryNode | None]
    ) -> QueryNode | None:
        if field is not None:
            return build(field)
        clauses = []
        for name, boost in self.default_fields.items():
            node = build(name)
            if node is not None:
                clauses.append(Clause(_boosted(node, boost), Occur.SHOULD))
        if not clauses:
            return None
        return Boolean(tuple(clauses))

    def _word_node(self, field: str, groups: Mapping[str, str | None]) -> QueryNode | None:
        word = groups["word"] or ""
        keyword = self.analyzer.is_keyword(field)
        if groups["wildcard"]:
            return Prefix(field, word if keyword else word.lower())
        if groups["fuzzy"]:
            edits = int(groups["edits"]) if groups["edits"] else 2
            return Fuzzy(field, word if keyword else word.lower(), min(edits, 2))
        tokens = self.analyzer.analyze_field(field, word)
        if not tokens:
            return None
        if len(tokens) == 1:
            return Term(field, tokens[0])
        return Boolean(tuple(Clause(Term(field, token), Occur.SHOULD) for token in tokens))

    def _phrase_node(self, field: str, groups: Mapping[str, str | None]) -> QueryNode | None:
        tokens = self.analyzer.analyze_field(field, groups["phrase"] or "")
        if not tokens:
            return None
        if len(tokens) == 1:
            return Term(field, tokens[0])
        return Phrase(field, tuple(tokens), slop=int(groups["slop"] or 0))


class _ParseState:
    def __init__(self, query: str, tokens: list[_Token]) -> None:
        self.query = query
        self.tokens = tokens
        self.index = 0

    def peek(self) -> _Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def advance_or_none(self) -> _Token | None:
        token = self.peek()
        if token is not None:
            self.index += 1
        return token

    def advance(self) -> _Token:
        token = self.advance_or_none()
        if token is None:
            raise StructuredQueryError("Unexpected end of query", query=self.query)
        return token

    def expect_clause_start(self) -> _Token:
        token = self.advance()
        if token.kind in ("and", "or", "rparen"):
            raise StructuredQueryError("Expected a term", query=self.query, position=token.pos)
        return token


def _boosted(node: QueryNode, boost: float) -> QueryNode:
    return replace(node, boost=node.boost * boost)
