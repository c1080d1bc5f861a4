"""Mapping of raw Elasticsearch responses into :class:`SearchResponse`."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from .errors import SearchFailedError
from .models import FacetBucket, SearchResponse

logger = logging.getLogger(__name__)

# Facet name -> path of aggregation names down to the bucket holder.
FACET_PATHS: Dict[str, tuple[str, ...]] = {
    "brand": ("brand",),
    "price": ("price",),
    "color": ("color_nested", "color"),
    "size": ("size_nested", "size"),
}


def _total_hits(hits: Mapping[str, Any]) -> int:
    total = hits["total"]
    if isinstance(total, Mapping):
        if total.get("relation") == "gte":
            logger.debug("totalHits %s is a lower bound", total.get("value"))
        return int(total["value"])
    return int(total)


def _facet(aggregations: Mapping[str, Any], path: tuple[str, ...]) -> List[FacetBucket]:
    node: Any = aggregations
    for name in path:
        node = node[name]
    return [FacetBucket(value=str(bucket["key"]), count=int(bucket["doc_count"])) for bucket in node["buckets"]]


def map_response(raw: Mapping[str, Any]) -> SearchResponse:
    """Pull hits and the four facets out of the engine response as-is.

    Hits and buckets keep the order the engine returned. A missing facet makes
    the whole response unusable.
    """
    try:
        hits = raw["hits"]
        products = [{**hit.get("_source", {}), "id": hit["_id"]} for hit in hits["hits"]]
        aggregations = raw["aggregations"]
        facets = {name: _facet(aggregations, path) for name, path in FACET_PATHS.items()}
        total = _total_hits(hits)
    except (KeyError, TypeError, ValueError) as exc:
        raise SearchFailedError(f"Malformed search response: missing or invalid {exc}") from exc
    return SearchResponse(totalHits=total, products=products, facets=facets)
