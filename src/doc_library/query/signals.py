"""Regex signal extraction from raw input.

Each extractor is independent and order preserving. None of them raise:
a missing signal is an empty tuple or ``None``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from doc_library.types import SignalSet

EXCEPTION_OR_ERROR_PATTERN = re.compile(r"\b([A-Z][a-zA-Z]+(?:Exception|Error))\b")
HTTP_CODE_PATTERN = re.compile(r"\b(4\d\d|5\d\d)\b")
NAMESPACE_PATTERN = re.compile(r"\b([a-z]+\.[\w.]+)\b")
CAUSED_BY_PATTERN = re.compile(r"^Caused by:\s+(.+)$")
_WORD_SPLIT = re.compile(r"\W+")
_QUALIFIED_NAME = re.compile(r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")

PHASE_TERMS: frozenset[str] = frozenset(
    {"startup", "start", "boot", "initialize", "initialization", "init", "shutdown"}
)

# Plain-language descriptions that name a well-known exception type.
EXCEPTION_PHRASE_HINTS: Mapping[str, str] = {
    "tls handshake": "SSLHandshakeException",
    "ssl handshake": "SSLHandshakeException",
    "pkix path building": "SSLHandshakeException",
    "certificate path building": "SSLHandshakeException",
    "null pointer": "NullPointerException",
    "mismatched input": "MismatchedInputException",
    "out of memory": "OutOfMemoryError",
}


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def find_all(pattern: re.Pattern[str], text: str) -> tuple[str, ...]:
    return _unique(match.group(1) for match in pattern.finditer(text or ""))


def deepest_cause(text: str) -> str | None:
    """Return the body of the last ``Caused by:`` line, the root cause."""

    cause: str | None = None
    for line in (text or "").splitlines():
        match = CAUSED_BY_PATTERN.match(line)
        if match:
            cause = match.group(1)
    return cause


def cause_type(cause: str) -> str:
    """``java.net.SocketTimeoutException: Read timed out`` -> ``java.net.SocketTimeoutException``."""

    return cause.split(":", 1)[0].strip()


def exception_names(raw: str, normalized: str, cause: str | None = None) -> tuple[str, ...]:
    names = list(find_all(EXCEPTION_OR_ERROR_PATTERN, raw))
    # Free-text causes ("something went wrong") are not type names.
    if cause and _QUALIFIED_NAME.fullmatch(cause_type(cause)):
        names.append(cause_type(cause))
    for phrase, name in EXCEPTION_PHRASE_HINTS.items():
        if phrase in normalized:
            names.append(name)
    return _unique(name for name in names if name)


def http_codes(raw: str) -> tuple[str, ...]:
    return find_all(HTTP_CODE_PATTERN, raw)


def namespaces(raw: str) -> tuple[str, ...]:
    return _unique(ns.rstrip(".") for ns in find_all(NAMESPACE_PATTERN, raw) if ns.rstrip("."))


def phase_terms(normalized: str) -> tuple[str, ...]:
    return _unique(word for word in _WORD_SPLIT.split(normalized) if word in PHASE_TERMS)


def extract_signals(raw: str, normalized: str | None = None) -> SignalSet:
    """Pull every signal out of ``raw``; ``normalized`` defaults to its lowercase form."""

    norm = normalized if normalized is not None else raw.lower()
    cause = deepest_cause(raw)
    return SignalSet(
        exception_names=exception_names(raw, norm, cause),
        http_codes=http_codes(raw),
        namespaces=namespaces(raw),
        phases=phase_terms(norm),
        deepest_cause=cause,
    )
