"""Exception hierarchy for the document library."""

from __future__ import annotations


class DocumentLibraryError(Exception):
    """Base class for every error raised by the library."""


class StructuredQueryError(DocumentLibraryError):
    """A structured query string could not be parsed."""

    def __init__(self, message: str, *, query: str, position: int | None = None) -> None:
        super().__init__(message)
        self.query = query
        self.position = position

    def __str__(self) -> str:
        base = super().__str__()
        if self.position is None:
            return f"{base} in query {self.query!r}"
        return f"{base} at position {self.position} in query {self.query!r}"


class IndexStorageError(DocumentLibraryError):
    """The search collaborator failed to store or read documents."""


class SynonymLoadError(DocumentLibraryError):
    """The synonym resource could not be read at all."""


class SmartSearchUnavailableError(DocumentLibraryError):
    """Smart search was disabled because its analysis stack failed to load."""


class DocumentNotFoundError(DocumentLibraryError):
    """No document exists for the requested id."""

    def __init__(self, doc_id: str) -> None:
        super().__init__(f"No document with id {doc_id}")
        self.doc_id = doc_id
