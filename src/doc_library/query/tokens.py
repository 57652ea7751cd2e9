"""Synonym-aware token collection for the general relevance clause."""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from doc_library.analysis.analyzers import PerFieldAnalyzer
from doc_library.config import QueryBuilderConfig

logger = structlog.get_logger(__name__)

_NON_WORD = re.compile(r"\W+")

OOME_TOKENS: tuple[str, ...] = ("outofmemoryerror", "oome")
OOME_TEXT_MARKERS: tuple[str, ...] = (
    "outofmemoryerror",
    "oome",
    "java heap space",
    "gc overhead limit exceeded",
)

ANALYSIS_FIELD = "content"


def fallback_tokens(text: str, limit: int) -> list[str]:
    """Lowercase, split on non-word characters, keep words of 3+ chars."""

    out: dict[str, None] = {}
    for word in _NON_WORD.split(text.lower()):
        if len(word) >= 3:
            out.setdefault(word)
            if len(out) >= limit:
                break
    return list(out)


def analyze_to_tokens(analyzer: PerFieldAnalyzer, field: str, text: str, limit: int) -> list[str]:
    """Unique analyzed tokens in first-seen order, at most ``limit`` of them.

    Any analyzer failure degrades to `fallback_tokens` so that query
    construction never stops on analysis.
    """

    out: dict[str, None] = {}
    try:
        for token in analyzer.for_field(field).tokens(text):
            out.setdefault(token)
            if len(out) >= limit:
                break
    except Exception as exc:
        logger.warning("analyzer_failed_using_fallback", field=field, error=str(exc))
        return fallback_tokens(text, limit)
    return list(out)


def namespace_leaves(namespaces: Iterable[str]) -> list[str]:
    """Last and second-to-last segments, likely class and module names."""

    leaves: list[str] = []
    for namespace in namespaces:
        parts = [part for part in namespace.split(".") if part]
        if parts:
            leaves.append(parts[-1].lower())
        if len(parts) > 1:
            leaves.append(parts[-2].lower())
    return leaves


def collect_tokens(
    analyzer: PerFieldAnalyzer,
    text: str,
    namespaces: Iterable[str] = (),
    config: QueryBuilderConfig | None = None,
) -> tuple[str, ...]:
    """Analyzed tokens plus namespace leaves, never more than ``max_general_terms``.

    Leaves are kept in preference to the tail of the analyzed tokens.
    """

    cfg = config or QueryBuilderConfig()
    cap = cfg.max_general_terms
    tokens = analyze_to_tokens(analyzer, ANALYSIS_FIELD, text, cfg.raw_token_budget)[:cap]
    leaves = list(dict.fromkeys(namespace_leaves(namespaces)))[:cap]
    if not leaves:
        return tuple(tokens)
    leaf_set = set(leaves)
    head = [token for token in tokens if token not in leaf_set]
    return tuple(head[: cap - len(leaves)] + leaves)


def mentions_out_of_memory(normalized: str, tokens: Iterable[str]) -> bool:
    if any(marker in normalized for marker in OOME_TEXT_MARKERS):
        return True
    token_set = set(tokens)
    return any(token in token_set for token in OOME_TOKENS)
