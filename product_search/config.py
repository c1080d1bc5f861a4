"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _parse_track_total_hits(raw: str) -> bool | int:
    """Exact totals (``true``) or a positive lower-bound threshold.

    Disabling hit tracking would drop ``hits.total`` from every response, and
    ``totalHits`` is part of each search response, so it is refused.
    """
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes"}:
        return True
    if lowered.isdigit() and int(lowered) > 0:
        return int(lowered)
    raise ValueError(f"TRACK_TOTAL_HITS must be 'true' or a positive integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Settings container with environment variable overrides.

    Passed explicitly to the lifecycle manager and the search service so tests
    can build their own instances instead of patching module state.
    """

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_request_timeout: float = float(_get_env("ES_REQUEST_TIMEOUT", "10"))
    index_alias: str = _get_env("ES_INDEX_ALIAS", "product_index")
    settings_path: str = _get_env("SETTINGS_PATH", str(RESOURCES_DIR / "settings.json"))
    mappings_path: str = _get_env("MAPPINGS_PATH", str(RESOURCES_DIR / "mappings.json"))
    products_path: str = _get_env("PRODUCTS_PATH", str(RESOURCES_DIR / "products.json"))
    search_analyzer: str = _get_env("SEARCH_ANALYZER", "text_analyzer")
    retention_count: int = int(_get_env("RETENTION_COUNT", "3"))
    bulk_chunk_size: int = int(_get_env("BULK_CHUNK_SIZE", "500"))
    # ``True`` keeps totals exact; an integer makes them a lower bound past it.
    track_total_hits: bool | int = _parse_track_total_hits(_get_env("TRACK_TOTAL_HITS", "true"))
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    rebuild_lock_timeout: int = int(_get_env("REBUILD_LOCK_TIMEOUT", "600"))
    rebuild_on_startup: bool = _get_env("REBUILD_ON_STARTUP", "true").lower() in {"1", "true", "yes"}
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
