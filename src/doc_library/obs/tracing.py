"""Smart-search tracing and summary metrics."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from doc_library.types import Intent


@dataclass(slots=True)
class SearchTrace:
    trace_id: str
    timestamp_utc: str
    text_preview: str
    intent: Intent
    query: str
    rejected: bool
    must_clauses: int
    minimum_should_match: int
    hit_count: int
    doc_ids: list[str]
    latency_ms: float


class SearchTraceStore:
    """In-memory trace storage for API-level observability.

    Keeps the most recent ``max_records`` traces; older ones are evicted in
    insertion order.
    """

    def __init__(self, *, max_records: int = 1000, preview_chars: int = 200) -> None:
        self._records: dict[str, SearchTrace] = {}
        self._lock = threading.Lock()
        self.max_records = max_records
        self.preview_chars = preview_chars

    def create_record(
        self,
        *,
        text: str,
        intent: Intent,
        query: str,
        rejected: bool,
        must_clauses: int,
        minimum_should_match: int,
        doc_ids: list[str],
        latency_ms: float,
    ) -> SearchTrace:
        record = SearchTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            text_preview=text[: self.preview_chars],
            intent=intent,
            query=query,
            rejected=rejected,
            must_clauses=must_clauses,
            minimum_should_match=minimum_should_match,
            hit_count=len(doc_ids),
            doc_ids=doc_ids,
            latency_ms=latency_ms,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self.max_records:
                del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> SearchTrace:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[SearchTrace]:
        with self._lock:
            records = list(self._records.values())
        return records[-limit:] if limit > 0 else []

    def summary(self) -> dict[str, float | int | dict[str, int]]:
        """Aggregate search metrics for dashboard display."""
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_searches": 0,
                "zero_result_rate": 0.0,
                "rejected_queries": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "intents": {},
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        zero_hits = sum(1 for record in records if record.hit_count == 0)
        intents: dict[str, int] = {}
        for record in records:
            intents[record.intent.value] = intents.get(record.intent.value, 0) + 1

        return {
            "total_searches": total,
            "zero_result_rate": zero_hits / total,
            "rejected_queries": sum(1 for record in records if record.rejected),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "intents": intents,
        }


class Timer:
    """Simple context timer."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
