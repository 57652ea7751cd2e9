"""Free-text to query-tree pipeline."""

from .builder import BuiltQuery, SmartQueryBuilder
from .intent import detect_intent
from .nodes import (
    Boolean,
    Clause,
    DisjunctionMax,
    Fuzzy,
    Occur,
    Phrase,
    Prefix,
    QueryNode,
    Term,
    render_query,
)
from .preprocess import preprocess_for_search
from .signals import extract_signals

__all__ = [
    "Boolean",
    "BuiltQuery",
    "Clause",
    "DisjunctionMax",
    "Fuzzy",
    "Occur",
    "Phrase",
    "Prefix",
    "QueryNode",
    "SmartQueryBuilder",
    "Term",
    "detect_intent",
    "extract_signals",
    "preprocess_for_search",
    "render_query",
]
