"""Compression of large logs and stack traces before analysis."""

from __future__ import annotations

import re

from doc_library.config import QueryBuilderConfig

ELISION_MARKER = "\n...\n"

FRAME_PATTERN = re.compile(r"^\s*at\s+([\w$.]+)\.[\w$<>]+\(.*\)$")
_MORE_PATTERN = re.compile(r"\.\.\.\s*\d+\s+more\b")


def cap_length(text: str, max_chars: int) -> str:
    """Keep the head and the tail, where the deepest cause usually is."""

    if len(text) <= max_chars:
        return text
    half = (max_chars - len(ELISION_MARKER)) // 2
    return text[:half] + ELISION_MARKER + text[-half:]


def preprocess_for_search(text: str, config: QueryBuilderConfig | None = None) -> str:
    """Reduce raw input to the lines that carry diagnostic signal.

    Kept lines, in input order:
    - ``Caused by:`` lines (the last one is re-appended if it was lost),
    - lines mentioning ``Exception:``, ``ERROR`` or ``FATAL``,
    - the first ``max_frames`` stack frames,
    - ``Suppressed:`` lines.

    ``... N more`` lines are dropped. When no line qualifies the capped text
    is returned as is, so plain questions pass through untouched.
    """

    cfg = config or QueryBuilderConfig()
    capped = cap_length(text, cfg.max_chars)

    kept: list[str] = []
    frames = 0
    last_cause: str | None = None

    for line in capped.splitlines():
        if line.startswith("Caused by:"):
            kept.append(line)
            last_cause = line
            continue
        if "Exception:" in line or "ERROR" in line or "FATAL" in line:
            kept.append(line)
            continue
        if frames < cfg.max_frames and FRAME_PATTERN.search(line):
            kept.append(line)
            frames += 1
            continue
        if line.startswith("Suppressed:"):
            kept.append(line)

    if last_cause is not None and last_cause not in kept:
        kept.append(last_cause)
    kept = [line for line in kept if not _MORE_PATTERN.search(line)]

    return "\n".join(kept) if kept else capped
