"""Terminal client for searching the catalog and triggering rebuilds."""
from __future__ import annotations

import argparse
import logging
from typing import Iterable

from product_search.config import settings
from product_search.errors import ProductSearchError
from product_search.es_client import get_backend
from product_search.indexing import IndexLifecycleManager
from product_search.locking import get_rebuild_lock
from product_search.models import SearchRequest, SearchResponse
from product_search.search_service import ProductSearchService

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def pretty_print_response(query: str, response: SearchResponse) -> None:
    print(f"Query: {query} | total hits: {response.totalHits} | shown: {len(response.products)}")
    for idx, product in enumerate(response.products, start=1):
        print(f"  {idx:02d}. {product.get('id')} | {product.get('brand')} | {product.get('name')} | {product.get('price')}")
    for facet, buckets in response.facets.items():
        rendered = ", ".join(f"{bucket.value}={bucket.count}" for bucket in buckets) or "-"
        print(f"  [{facet}] {rendered}")


def run_search(query: str, page: int, size: int) -> int:
    service = ProductSearchService(get_backend(), settings)
    try:
        response = service.search(SearchRequest(textQuery=query, page=page, pageSize=size))
    except ProductSearchError as exc:
        print(f"{RED}Search failed: {exc}{RESET}")
        return 1
    pretty_print_response(query, response)
    return 0


def run_rebuild(alias: str | None, retention: int | None) -> int:
    manager = IndexLifecycleManager(get_backend(), settings, lock=get_rebuild_lock(settings))
    try:
        result = manager.rebuild(alias=alias, retention_count=retention)
    except ProductSearchError as exc:
        print(f"{RED}Rebuild failed during {exc.stage}: {exc}{RESET}")
        return 1
    print(f"{GREEN}{result.alias} -> {result.generation}{RESET} ({result.indexed} products)")
    if result.deleted:
        print(f"  deleted: {', '.join(result.deleted)}")
    for warning in result.warnings:
        print(f"{RED}  warning: {warning}{RESET}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the product search service")
    parser.add_argument("--log-level", default=settings.log_level)
    commands = parser.add_subparsers(dest="command", required=True)

    search_cmd = commands.add_parser("search", help="Run one product search")
    search_cmd.add_argument("query", help="Free-text query")
    search_cmd.add_argument("--page", type=int, default=0)
    search_cmd.add_argument("--size", type=int, default=10)

    rebuild_cmd = commands.add_parser("rebuild", help="Rebuild the index behind the alias")
    rebuild_cmd.add_argument("--alias", default=None, help=f"Alias to rebuild (default {settings.index_alias})")
    rebuild_cmd.add_argument("--retention", type=int, default=None, help="Generations to keep")

    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if args.command == "search":
        return run_search(args.query, args.page, args.size)
    return run_rebuild(args.alias, args.retention)


if __name__ == "__main__":
    raise SystemExit(main())
