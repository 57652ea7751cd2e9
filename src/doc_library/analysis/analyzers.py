"""Text analyzers shared by indexing and query construction."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping

from doc_library.analysis.synonyms import SynonymMap

# Word runs, with inner dots/apostrophes kept so identifiers such as
# "java.lang.NullPointerException" survive as one token.
_TOKEN_PATTERN = re.compile(r"\w+(?:[.'’]\w+)*", flags=re.UNICODE)

# Classic English stop set used by Lucene-style analyzers.
ENGLISH_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if",
        "in", "into", "is", "it", "no", "not", "of", "on", "or", "such",
        "that", "the", "their", "then", "there", "these", "they", "this",
        "to", "was", "will", "with",
    }
)

# Words that appear in nearly every incident report and so cannot tell
# documents apart.
DOMAIN_STOP_WORDS: tuple[str, ...] = (
    "error", "errors", "exception", "exceptions", "failed", "failure", "fail",
    "stack", "trace", "stacktrace", "issue", "problem", "during", "when",
    "app", "application",
)


def build_stopwords(extra: tuple[str, ...] = DOMAIN_STOP_WORDS) -> frozenset[str]:
    return ENGLISH_STOP_WORDS | frozenset(word.lower() for word in extra)


def split_words(text: str) -> list[str]:
    """Tokenize without normalization."""
    return _TOKEN_PATTERN.findall(text)


class Analyzer(ABC):
    """Turns field text into the ordered stream of indexed terms."""

    @abstractmethod
    def tokens(self, text: str) -> Iterator[str]:
        """Yield terms in order; duplicates are allowed."""

    def analyze(self, text: str) -> list[str]:
        return list(self.tokens(text))


class KeywordAnalyzer(Analyzer):
    """Emits the whole value untouched, for identifier-like fields."""

    def tokens(self, text: str) -> Iterator[str]:
        if text:
            yield text


class StandardAnalyzer(Analyzer):
    """Tokenize and lowercase, optionally dropping stopwords."""

    def __init__(self, stopwords: frozenset[str] | None = None) -> None:
        self.stopwords = stopwords or frozenset()

    def tokens(self, text: str) -> Iterator[str]:
        for word in split_words(text):
            token = word.lower()
            if token not in self.stopwords:
                yield token


class SynonymAnalyzer(Analyzer):
    """Tokenize, lowercase, expand synonyms, then drop stopwords.

    Synonyms are applied before stop filtering so that a stopword can still
    take part in a multi-word synonym entry.
    """

    def __init__(
        self,
        synonyms: SynonymMap,
        stopwords: frozenset[str] | None = None,
    ) -> None:
        self.synonyms = synonyms
        self.stopwords = stopwords or frozenset()

    def tokens(self, text: str) -> Iterator[str]:
        lowered = [word.lower() for word in split_words(text)]
        for token in self.synonyms.expand(lowered):
            if token not in self.stopwords:
                yield token


class PerFieldAnalyzer(Analyzer):
    """Routes analysis by field name, falling back to a default analyzer."""

    def __init__(self, default: Analyzer, per_field: Mapping[str, Analyzer]) -> None:
        self.default = default
        self._per_field = dict(per_field)

    def for_field(self, field: str) -> Analyzer:
        return self._per_field.get(field, self.default)

    def is_keyword(self, field: str) -> bool:
        return isinstance(self.for_field(field), KeywordAnalyzer)

    def tokens(self, text: str) -> Iterator[str]:
        return self.default.tokens(text)

    def analyze_field(self, field: str, text: str) -> list[str]:
        return self.for_field(field).analyze(text)


TEXT_FIELDS: tuple[str, ...] = (
    "title",
    "category",
    "content",
    "notes",
    "tags",
    "catchAll",
    "docType_text",
)

KEYWORD_FIELDS: tuple[str, ...] = (
    "id",
    "docType",
    "relatedTo",
    "category_exact",
    "tags_exact",
)


def index_analyzer() -> PerFieldAnalyzer:
    """Analyzer the engine applies to stored documents."""
    keyword = KeywordAnalyzer()
    return PerFieldAnalyzer(StandardAnalyzer(), {field: keyword for field in KEYWORD_FIELDS})


def query_analyzer(synonyms: SynonymMap, stopwords: frozenset[str] | None = None) -> PerFieldAnalyzer:
    """Analyzer used on free text: synonyms for text fields, exact values elsewhere."""
    text = SynonymAnalyzer(synonyms, stopwords if stopwords is not None else build_stopwords())
    keyword = KeywordAnalyzer()
    per_field: dict[str, Analyzer] = {field: text for field in TEXT_FIELDS}
    per_field.update({field: keyword for field in KEYWORD_FIELDS})
    return PerFieldAnalyzer(StandardAnalyzer(), per_field)
