"""FastAPI application wiring the search service."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException

from .config import settings
from .errors import ProductSearchError, SearchFailedError
from .es_client import get_backend
from .indexing import IndexLifecycleManager
from .locking import get_rebuild_lock
from .models import SearchRequest, SearchResponse
from .search_service import ProductSearchService

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Product Search Service")


@lru_cache(maxsize=1)
def get_service() -> ProductSearchService:
    return ProductSearchService(get_backend(), settings)


@app.on_event("startup")
async def startup_event() -> None:
    if not settings.rebuild_on_startup:
        return
    manager = IndexLifecycleManager(get_backend(), settings, lock=get_rebuild_lock(settings))
    try:
        result = await asyncio.to_thread(manager.rebuild)
    except ProductSearchError:
        # The previously bound generation, if any, keeps serving.
        logger.exception("Startup rebuild of %s failed", settings.index_alias)
        return
    logger.info("Startup rebuild indexed %s products into %s", result.indexed, result.generation)


@app.get("/health")
async def health(service: ProductSearchService = Depends(get_service)) -> dict:
    backend = service.backend
    try:
        status = await asyncio.to_thread(backend.cluster_status)
        generations = await asyncio.to_thread(backend.get_alias_targets, settings.index_alias)
    except ProductSearchError as exc:
        logger.warning("Health check failed: %s", exc)
        return {"elasticsearch": "unavailable", "alias": settings.index_alias, "generations": []}
    return {
        "elasticsearch": status,
        "alias": settings.index_alias,
        "generations": sorted(generations),
    }


@app.post("/v1/product", response_model=SearchResponse)
async def search(request: SearchRequest, service: ProductSearchService = Depends(get_service)) -> SearchResponse:
    try:
        return await asyncio.to_thread(service.search, request)
    except SearchFailedError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
