"""StructuredQuery schema and the query-parsing endpoint contract."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from priceradar.scrapers.utils.normalizer import normalize_condition


_SHIPPING = frozenset(["local", "national", "international"])


class StructuredQuery(BaseModel):
    """Normalized constraint set derived from a user's free-text request.

    Immutable. Stored as JSON on the monitor and consumed by URL building,
    offer extraction prompts and filtering.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    item: str = Field(..., min_length=1, description="Main product being searched")
    brand: Optional[str] = None
    model: Optional[str] = None
    condition: Optional[Literal["new", "used", "refurbished"]] = None
    price_min: Optional[float] = Field(None, gt=0)
    price_max: Optional[float] = Field(None, gt=0)
    location: Optional[str] = None
    shipping: Optional[Literal["local", "national", "international"]] = None
    keywords: Optional[List[str]] = None

    @field_validator("brand", "model", "location", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("condition", mode="before")
    @classmethod
    def canonical_condition(cls, v):
        # "Usato", "nuova", "reconditionné" -> used / new / refurbished
        if isinstance(v, str):
            return normalize_condition(v)
        return v

    @field_validator("shipping", mode="before")
    @classmethod
    def lower_shipping(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in _SHIPPING else None
        return v

    @classmethod
    def degraded(cls, free_text: str) -> "StructuredQuery":
        """Build the fallback query used when the model reply is unusable."""
        return cls(item=free_text, keywords=[free_text])

    def search_terms(self) -> str:
        """Search text for marketplace URLs: brand + model, else item."""
        parts = [p for p in (self.brand, self.model) if p]
        if parts:
            return " ".join(parts)
        return self.item


class ParseQueryRequest(BaseModel):
    """Request body for POST /queries/parse."""

    model_config = ConfigDict(str_strip_whitespace=True)

    query_text: str = Field(..., min_length=1, max_length=1000, examples=["RTX 4080 usata sotto 800 euro"])


class ParseQueryResponse(BaseModel):
    """Response body for POST /queries/parse."""

    success: bool = True
    parsed: StructuredQuery
