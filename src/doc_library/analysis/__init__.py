"""Field analysis: tokenizers, stopwords, and synonym expansion."""

from .analyzers import (
    DOMAIN_STOP_WORDS,
    ENGLISH_STOP_WORDS,
    Analyzer,
    KeywordAnalyzer,
    PerFieldAnalyzer,
    StandardAnalyzer,
    SynonymAnalyzer,
    build_stopwords,
    index_analyzer,
    query_analyzer,
)
from .synonyms import SynonymMap, load_synonyms, parse_synonyms

__all__ = [
    "DOMAIN_STOP_WORDS",
    "ENGLISH_STOP_WORDS",
    "Analyzer",
    "KeywordAnalyzer",
    "PerFieldAnalyzer",
    "StandardAnalyzer",
    "SynonymAnalyzer",
    "SynonymMap",
    "build_stopwords",
    "index_analyzer",
    "load_synonyms",
    "parse_synonyms",
    "query_analyzer",
]
