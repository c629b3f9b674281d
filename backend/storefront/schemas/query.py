from __future__ import annotations

import enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortBy(str, enum.Enum):
    price_asc = "price_asc"
    price_desc = "price_desc"
    rating_desc = "rating_desc"
    name_asc = "name_asc"
    name_desc = "name_desc"
    newest = "newest"


class QuerySource(str, enum.Enum):
    """Which path of the query builder produced a StructuredQuery."""

    llm = "llm"
    regex_fallback = "regex_fallback"


DEFAULT_QUERY_LIMIT = 20


class StructuredQuery(BaseModel):
    """Typed filter/sort/limit specification derived from free text.

    Field aliases follow the JSON the query-builder prompt asks the LLM for.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = Field(default=None, alias="minPrice", ge=0)
    max_price: Optional[float] = Field(default=None, alias="maxPrice", ge=0)
    min_rating: Optional[float] = Field(default=None, alias="minRating", ge=0, le=5)
    search_text: Optional[str] = Field(default=None, alias="searchText")
    sort_by: SortBy = Field(default=SortBy.newest, alias="sortBy")
    limit: int = Field(default=DEFAULT_QUERY_LIMIT, ge=1)

    @field_validator("category", "brand", "search_text", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        clean = str(value).strip()
        return clean or None

    @field_validator("sort_by", mode="before")
    @classmethod
    def unknown_sort_is_newest(cls, value: Any) -> Any:
        if isinstance(value, SortBy):
            return value
        clean = str(value or "").strip().lower()
        try:
            return SortBy(clean)
        except ValueError:
            return SortBy.newest

    def with_limit(self, limit: int) -> "StructuredQuery":
        return self.model_copy(update={"limit": max(1, int(limit))})

    def filters(self) -> Dict[str, Any]:
        """Present filter fields in their wire (camelCase) form."""
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"sort_by", "limit"},
        )


class BuiltQuery(BaseModel):
    query: StructuredQuery
    source: QuerySource

    @property
    def degraded(self) -> bool:
        return self.source == QuerySource.regex_fallback
