"""Document library with intent-aware smart search."""

from .config import QueryBuilderConfig, SearchConfig
from .service import DocumentLibrary
from .types import Document, Intent, SmartSearchResult

__all__ = [
    "Document",
    "DocumentLibrary",
    "Intent",
    "QueryBuilderConfig",
    "SearchConfig",
    "SmartSearchResult",
]
