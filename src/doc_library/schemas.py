"""Wire models shared by the HTTP API and the agent tools."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from doc_library.types import Document


class DocumentPayload(BaseModel):
    """A document as it travels over JSON, with camelCase field names."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    doc_type: str = Field(default="", alias="docType")
    title: str = ""
    category: str = ""
    content: str = ""
    notes: str = ""
    tags: list[str] = Field(default_factory=list)
    related_to: list[str] = Field(default_factory=list, alias="relatedTo")

    def to_domain(self) -> Document:
        return Document(
            id=self.id,
            doc_type=self.doc_type,
            title=self.title,
            category=self.category,
            content=self.content,
            notes=self.notes,
            tags=tuple(self.tags),
            related_to=tuple(self.related_to),
        )

    @classmethod
    def from_domain(cls, document: Document) -> "DocumentPayload":
        return cls(
            id=document.id,
            doc_type=document.doc_type,
            title=document.title,
            category=document.category,
            content=document.content,
            notes=document.notes,
            tags=list(document.tags),
            related_to=list(document.related_to),
        )

    def wire(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


class SmartSearchRequest(BaseModel):
    text: str = ""
    limit: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
