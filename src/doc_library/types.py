"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Intent(str, Enum):
    """What the user is most likely trying to do."""

    TROUBLESHOOT = "TROUBLESHOOT"
    HOWTO = "HOWTO"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class Document:
    """A library entry as stored and returned by the search collaborator."""

    id: str
    doc_type: str
    title: str
    category: str
    content: str
    notes: str
    tags: tuple[str, ...] = ()
    related_to: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SignalSet:
    """Discriminative substrings pulled from raw input."""

    exception_names: tuple[str, ...] = ()
    http_codes: tuple[str, ...] = ()
    namespaces: tuple[str, ...] = ()
    phases: tuple[str, ...] = ()
    deepest_cause: str | None = None


@dataclass(frozen=True, slots=True)
class ScoredDocument:
    """A search hit with its relevance score and 1-based rank."""

    document: Document
    score: float
    rank: int = 0


@dataclass(slots=True)
class SmartSearchResult:
    """Ranked documents for a free-text search, or the apology message."""

    documents: list[Document] = field(default_factory=list)
    message: str | None = None
    intent: Intent = Intent.UNKNOWN
    trace_id: str | None = None

    @property
    def empty(self) -> bool:
        return not self.documents


@dataclass(slots=True)
class ToolTrace:
    """One agent tool call; ``error`` names the library error it reported."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    error: str | None = None
