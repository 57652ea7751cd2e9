"""Configuration models for query construction and search."""

from __future__ import annotations

from pydantic import BaseModel, Field


class QueryBuilderConfig(BaseModel):
    """Bounds applied while turning free text into a query tree."""

    max_chars: int = Field(default=60_000, ge=1_000)
    max_frames: int = Field(default=24, ge=0)
    max_general_terms: int = Field(default=40, ge=1)
    raw_token_budget: int = Field(default=90, ge=1)
    max_alias_terms: int = Field(default=24, ge=1)
    field_tie_breaker: float = Field(default=0.1, ge=0.0, le=1.0)


class SearchConfig(BaseModel):
    """Result paging and scoring parameters for the in-memory engine."""

    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)
    bm25_k1: float = Field(default=1.2, gt=0.0)
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0)
