"""Pydantic models for request/response payloads and catalog documents."""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Ordered smallest to largest.
SIZES: tuple[str, ...] = ("xxs", "xs", "s", "m", "l", "xl", "xxl", "xxxl")
COLORS: frozenset[str] = frozenset(
    {"green", "black", "white", "blue", "yellow", "red", "brown", "orange", "grey"}
)

MAX_PAGE_SIZE = 100


class Sku(BaseModel):
    color: str
    size: str

    @field_validator("color")
    @classmethod
    def _known_color(cls, value: str) -> str:
        if value.lower() not in COLORS:
            raise ValueError(f"unknown color {value!r}")
        return value

    @field_validator("size")
    @classmethod
    def _known_size(cls, value: str) -> str:
        if value.lower() not in SIZES:
            raise ValueError(f"unknown size {value!r}")
        return value


class Product(BaseModel):
    """One sellable item as stored in the index."""

    id: str | None = None
    brand: str
    name: str
    price: Decimal = Field(..., ge=0)
    skus: list[Sku] = Field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump(exclude_none=True)
        document["price"] = float(self.price)
        return document


class SearchRequest(BaseModel):
    textQuery: str | None = Field(None, description="Free-text product query")
    page: int = Field(0, ge=0)
    pageSize: int = Field(
        10,
        ge=1,
        le=MAX_PAGE_SIZE,
        description=f"Products per page, at most {MAX_PAGE_SIZE}; larger pages are rejected with 422",
        validation_alias=AliasChoices("pageSize", "size"),
    )

    @property
    def is_blank(self) -> bool:
        return not (self.textQuery or "").strip()


class FacetBucket(BaseModel):
    value: str
    count: int


class SearchResponse(BaseModel):
    totalHits: int = 0
    products: list[dict[str, Any]] = Field(default_factory=list)
    facets: dict[str, list[FacetBucket]] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "SearchResponse":
        return cls(totalHits=0, products=[], facets={})
