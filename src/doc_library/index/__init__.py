"""Search engine collaborator: index contract, engines, query parsing."""

from .memory import DocumentIndex, IndexSnapshot, InMemoryDocumentIndex, InMemorySnapshot
from .structured import StructuredQueryParser
from .tantivy_index import TantivyDocumentIndex, TantivySnapshot

__all__ = [
    "DocumentIndex",
    "InMemoryDocumentIndex",
    "InMemorySnapshot",
    "IndexSnapshot",
    "StructuredQueryParser",
    "TantivyDocumentIndex",
    "TantivySnapshot",
]
