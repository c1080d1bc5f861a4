"""Product search built on top of Elasticsearch."""
from __future__ import annotations

import logging
from time import perf_counter

from .backend import SearchBackend
from .config import Settings, settings as default_settings
from .errors import ProductSearchError, SearchFailedError
from .mapper import map_response
from .models import SearchRequest, SearchResponse
from .query import QueryCompiler

logger = logging.getLogger(__name__)

# Relevance first, then document id for a deterministic order among equal scores.
SORT = [{"_score": {"order": "desc"}}, {"id": {"order": "desc", "unmapped_type": "keyword"}}]


class ProductSearchService:
    def __init__(
        self,
        backend: SearchBackend,
        config: Settings = default_settings,
        compiler: QueryCompiler | None = None,
    ) -> None:
        if config.track_total_hits is False or config.track_total_hits < 1:
            raise ValueError("track_total_hits must be True or a positive threshold; totalHits is always reported")
        self.backend = backend
        self.config = config
        self.compiler = compiler or QueryCompiler(backend, config.index_alias, config.search_analyzer)

    def search(self, request: SearchRequest) -> SearchResponse:
        # A blank query would be an unscored match-all, which is not a product search.
        if request.is_blank:
            return SearchResponse.empty()

        t0 = perf_counter()
        try:
            compiled = self.compiler.compile(request.textQuery or "")
            if compiled.is_empty:
                logger.info("search q=%r produced no tokens", request.textQuery)
                return SearchResponse.empty()
            t1 = perf_counter()
            raw = self.backend.search(
                self.config.index_alias,
                query=compiled.query,
                aggregations=compiled.aggregations,
                sort=SORT,
                from_=request.page * request.pageSize,
                size=request.pageSize,
                track_total_hits=self.config.track_total_hits,
            )
            t2 = perf_counter()
            response = map_response(raw)
        except SearchFailedError:
            raise
        except ProductSearchError as exc:
            raise SearchFailedError(f"Search for {request.textQuery!r} failed: {exc}") from exc

        logger.info(
            "timing: total=%.2fms compile=%.2fms es=%.2fms q=%r page=%s size=%s hits=%s",
            (perf_counter() - t0) * 1000,
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
            request.textQuery,
            request.page,
            request.pageSize,
            response.totalHits,
        )
        return response
