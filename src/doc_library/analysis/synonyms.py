"""Synonym table loading and token-stream expansion.

The resource format is the Solr one, one rule per line:

- ``tls, ssl, https``: every term expands to every other term.
- ``oome, heap exhaustion => outofmemoryerror``: the left side is rewritten
  to the right side only; the original is dropped unless repeated on the
  right.

Blank lines and ``#`` comments are ignored. Lines that cannot be parsed are
skipped with a warning; only an unreadable resource is fatal.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from importlib import resources
from pathlib import Path

import structlog

from doc_library.errors import SynonymLoadError

logger = structlog.get_logger(__name__)

_WORD_PATTERN = re.compile(r"\w+(?:[.'’]\w+)*", flags=re.UNICODE)

DEFAULT_RESOURCE = "synonyms.txt"

Phrase = tuple[str, ...]


class SynonymMap:
    """Immutable lookup from token sequences to their expansions."""

    def __init__(self, rules: dict[Phrase, tuple[Phrase, ...]] | None = None) -> None:
        self._rules: dict[Phrase, tuple[Phrase, ...]] = dict(rules or {})
        self._max_len = max((len(key) for key in self._rules), default=0)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, phrase: object) -> bool:
        return phrase in self._rules

    def lookup(self, phrase: Sequence[str]) -> tuple[Phrase, ...]:
        return self._rules.get(tuple(phrase), ())

    def expand(self, tokens: Sequence[str]) -> Iterator[str]:
        """Yield ``tokens`` with every matched entry replaced by its expansion.

        Matching is greedy, longest entry first. When the matched phrase is
        part of its own expansion it is emitted first, so callers collecting
        an ordered set see the user's wording before the alternatives.
        """

        i = 0
        while i < len(tokens):
            match: Phrase | None = None
            for length in range(min(self._max_len, len(tokens) - i), 0, -1):
                candidate = tuple(tokens[i : i + length])
                if candidate in self._rules:
                    match = candidate
                    break

            if match is None:
                yield tokens[i]
                i += 1
                continue

            outputs = self._rules[match]
            if match in outputs:
                yield from match
            for output in outputs:
                if output != match:
                    yield from output
            i += len(match)


def _phrase(term: str) -> Phrase:
    return tuple(word.lower() for word in _WORD_PATTERN.findall(term))


def _terms(side: str) -> list[Phrase]:
    return [phrase for phrase in (_phrase(part) for part in side.split(",")) if phrase]


def parse_synonyms(lines: Iterable[str]) -> SynonymMap:
    """Build a `SynonymMap` from rule lines, skipping the malformed ones."""

    rules: dict[Phrase, list[Phrase]] = {}
    skipped = 0

    def _add(source: Phrase, targets: Iterable[Phrase]) -> None:
        bucket = rules.setdefault(source, [])
        for target in targets:
            if target not in bucket:
                bucket.append(target)

    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if "=>" in line:
            sides = line.split("=>")
            if len(sides) != 2:
                skipped += 1
                logger.warning("synonym_line_skipped", line_no=line_no, reason="multiple '=>'")
                continue
            sources, targets = _terms(sides[0]), _terms(sides[1])
            if not sources or not targets:
                skipped += 1
                logger.warning("synonym_line_skipped", line_no=line_no, reason="empty side")
                continue
            for source in sources:
                _add(source, targets)
            continue

        group = _terms(line)
        if len(group) < 2:
            skipped += 1
            logger.warning("synonym_line_skipped", line_no=line_no, reason="single term")
            continue
        for source in group:
            _add(source, group)

    logger.debug("synonyms_parsed", rules=len(rules), skipped=skipped)
    return SynonymMap({source: tuple(targets) for source, targets in rules.items()})


def load_synonyms(path: str | Path | None = None) -> SynonymMap:
    """Load the synonym table from ``path`` or from the bundled resource."""

    try:
        if path is None:
            text = (
                resources.files("doc_library.resources")
                .joinpath(DEFAULT_RESOURCE)
                .read_text(encoding="utf-8")
            )
            source = f"package:{DEFAULT_RESOURCE}"
        else:
            text = Path(path).read_text(encoding="utf-8")
            source = str(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise SynonymLoadError(f"Cannot read synonyms from {path or DEFAULT_RESOURCE}: {exc}") from exc

    synonyms = parse_synonyms(text.splitlines())
    logger.info("synonyms_loaded", source=source, rules=len(synonyms))
    return synonyms
