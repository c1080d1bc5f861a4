"""Query compilation: analyzer round-trip, token classification, aggregations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence

from .backend import SearchBackend
from .models import COLORS, SIZES

logger = logging.getLogger(__name__)

SIZE_BOOST = 2.0
COLOR_BOOST = 3.0
SHINGLE_BOOST = 5.0
TEXT_FIELDS = ["brand", "name"]
SHINGLE_FIELDS = ["brand.shingles", "name.shingles"]

BRAND_FACET_SIZE = 10
# Colors and sizes are small closed sets; this stands in for "every bucket".
NESTED_FACET_SIZE = 1000
PRICE_RANGES = (
    ("Cheap", 0, 100),
    ("Average", 100, 500),
    ("Expensive", 500, None),
)
FACET_ORDER = [{"_count": "desc"}, {"_key": "asc"}]

_SIZE_SET = frozenset(SIZES)


class TokenKind(str, Enum):
    SIZE = "size"
    COLOR = "color"
    TEXT = "text"


def classify_token(token: str) -> TokenKind:
    lowered = token.lower()
    if lowered in _SIZE_SET:
        return TokenKind.SIZE
    if lowered in COLORS:
        return TokenKind.COLOR
    return TokenKind.TEXT


def _nested_term(field: str, token: str, boost: float) -> dict:
    return {
        "bool": {
            "should": [
                {
                    "nested": {
                        "path": "skus",
                        "query": {"term": {field: token}},
                        "score_mode": "sum",
                    }
                }
            ],
            "boost": boost,
        }
    }


def token_clause(token: str) -> dict:
    """Build the clause one analyzed token has to satisfy.

    Size and color keywords only match their SKU field. Every other token is
    matched across brand and name, with a boosted shingle variant that favours
    adjacent-phrase hits.
    """
    kind = classify_token(token)
    if kind is TokenKind.SIZE:
        return _nested_term("skus.size", token, SIZE_BOOST)
    if kind is TokenKind.COLOR:
        return _nested_term("skus.color", token, COLOR_BOOST)
    return {
        "bool": {
            "should": [
                {
                    "multi_match": {
                        "query": token,
                        "fields": TEXT_FIELDS,
                        "type": "cross_fields",
                        "operator": "and",
                    }
                },
                {
                    "multi_match": {
                        "query": token,
                        "fields": SHINGLE_FIELDS,
                        "type": "cross_fields",
                        "boost": SHINGLE_BOOST,
                    }
                },
            ]
        }
    }


def build_query(tokens: Sequence[str]) -> dict:
    return {"bool": {"must": [token_clause(token) for token in tokens]}}


def _terms(field: str, size: int) -> dict:
    return {"terms": {"field": field, "size": size, "order": FACET_ORDER}}


def build_aggregations() -> Dict[str, Any]:
    ranges: List[dict] = []
    for key, low, high in PRICE_RANGES:
        bucket: Dict[str, Any] = {"key": key, "from": low}
        if high is not None:
            bucket["to"] = high
        ranges.append(bucket)
    return {
        "brand": _terms("brand.keyword", BRAND_FACET_SIZE),
        "price": {"range": {"field": "price", "ranges": ranges}},
        "color_nested": {
            "nested": {"path": "skus"},
            "aggs": {"color": _terms("skus.color.facet", NESTED_FACET_SIZE)},
        },
        "size_nested": {
            "nested": {"path": "skus"},
            "aggs": {"size": _terms("skus.size.facet", NESTED_FACET_SIZE)},
        },
    }


@dataclass(frozen=True)
class CompiledQuery:
    tokens: tuple[str, ...]
    query: dict
    aggregations: dict

    @property
    def is_empty(self) -> bool:
        return not self.tokens


class QueryCompiler:
    """Turns free text into the structured query and aggregation request.

    Tokens come from the index's own analyzer so they are normalized exactly
    like the indexed text; backend errors propagate unchanged.
    """

    def __init__(self, backend: SearchBackend, index: str, analyzer: str) -> None:
        self.backend = backend
        self.index = index
        self.analyzer = analyzer

    def compile(self, text: str) -> CompiledQuery:
        tokens = tuple(self.backend.analyze(self.index, self.analyzer, text))
        logger.debug(
            "compile q=%r tokens=%s kinds=%s",
            text,
            tokens,
            [classify_token(token).value for token in tokens],
        )
        return CompiledQuery(tokens=tokens, query=build_query(tokens), aggregations=build_aggregations())
