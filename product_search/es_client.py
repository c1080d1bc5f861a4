"""Elasticsearch client factory and the backend adapter built on it.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread`` by the caller where necessary.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Iterable, Iterator, Sequence

from elasticsearch import ApiError, BadRequestError, Elasticsearch, NotFoundError, TransportError, helpers

from .backend import AliasAction, BulkOutcome
from .config import settings
from .errors import BackendUnavailableError, BulkItemFailure, SchemaRejectedError
from .importer import document_identifier, iter_actions

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host, request_timeout=settings.es_request_timeout)


def _body(response: Any) -> Any:
    return getattr(response, "body", response)


@contextmanager
def _backend_call(operation: str) -> Iterator[None]:
    try:
        yield
    except (ApiError, TransportError) as exc:
        logger.error("Elasticsearch %s failed: %s", operation, exc)
        raise BackendUnavailableError(f"Elasticsearch {operation} failed: {exc}") from exc


def _failure_reason(info: dict) -> str:
    item = next(iter(info.values()), {}) if info else {}
    error = item.get("error") if isinstance(item, dict) else None
    if isinstance(error, dict):
        return f"{error.get('type', 'error')}: {error.get('reason', '')}".strip()
    if error:
        return str(error)
    return f"status {item.get('status', 'unknown')}" if isinstance(item, dict) else "unknown"


class ElasticsearchBackend:
    """:class:`~product_search.backend.SearchBackend` over the official client."""

    def __init__(self, client: Elasticsearch, *, chunk_size: int = 500) -> None:
        self.client = client
        self.chunk_size = chunk_size

    def create_collection(self, name: str, settings: dict, mappings: dict) -> bool:
        logger.info("Creating index %s", name)
        try:
            response = self.client.indices.create(index=name, settings=settings, mappings=mappings)
        except BadRequestError as exc:
            logger.error("Index %s rejected: %s", name, exc)
            raise SchemaRejectedError(f"Elasticsearch rejected settings/mappings for {name}: {exc}") from exc
        except (ApiError, TransportError) as exc:
            raise BackendUnavailableError(f"An error occurred during creating index {name}: {exc}") from exc
        return bool(response.get("acknowledged"))

    def bulk_write(self, name: str, documents: Sequence[dict]) -> BulkOutcome:
        outcome = BulkOutcome()
        with _backend_call("bulk"):
            results = helpers.streaming_bulk(
                self.client,
                iter_actions(name, documents),
                chunk_size=self.chunk_size,
                raise_on_error=False,
            )
            # Items come back in request order, chunk after chunk.
            for position, (ok, info) in enumerate(results):
                if ok:
                    outcome.indexed += 1
                    continue
                identifier = document_identifier(documents[position], position)
                outcome.failures.append(BulkItemFailure(identifier, _failure_reason(info)))
            self.client.indices.refresh(index=name)
        logger.info("Bulk wrote %s documents into %s (%s failed)", outcome.indexed, name, len(outcome.failures))
        return outcome

    def analyze(self, index: str, analyzer: str, text: str) -> list[str]:
        with _backend_call("analyze"):
            response = self.client.indices.analyze(index=index, analyzer=analyzer, text=text)
        return [token["token"] for token in response.get("tokens", [])]

    def search(
        self,
        index: str,
        *,
        query: dict,
        aggregations: dict,
        sort: list[dict],
        from_: int,
        size: int,
        track_total_hits: bool | int = True,
    ) -> dict[str, Any]:
        with _backend_call("search"):
            response = self.client.search(
                index=index,
                query=query,
                aggs=aggregations,
                sort=sort,
                from_=from_,
                size=size,
                track_total_hits=track_total_hits,
            )
        return _body(response)

    def get_alias_targets(self, alias: str) -> set[str]:
        try:
            response = self.client.indices.get_alias(name=alias)
        except NotFoundError:
            return set()
        except (ApiError, TransportError) as exc:
            raise BackendUnavailableError(f"Elasticsearch get_alias failed: {exc}") from exc
        return set(_body(response))

    def swap_alias(self, remove: Iterable[AliasAction], add: Iterable[AliasAction]) -> bool:
        actions = [{"remove": {"index": index, "alias": alias}} for index, alias in remove]
        actions += [{"add": {"index": index, "alias": alias}} for index, alias in add]
        with _backend_call("update_aliases"):
            response = self.client.indices.update_aliases(actions=actions)
        return bool(response.get("acknowledged"))

    def list_collections(self, pattern: str) -> list[str]:
        try:
            response = self.client.indices.get(index=pattern, allow_no_indices=True)
        except NotFoundError:
            return []
        except (ApiError, TransportError) as exc:
            raise BackendUnavailableError(f"Elasticsearch get index failed: {exc}") from exc
        return sorted(_body(response))

    def delete_collections(self, names: Sequence[str]) -> bool:
        if not names:
            return True
        with _backend_call("delete index"):
            response = self.client.indices.delete(index=list(names))
        return bool(response.get("acknowledged"))

    def cluster_status(self) -> str | None:
        with _backend_call("cluster health"):
            return self.client.cluster.health().get("status")


def get_backend() -> ElasticsearchBackend:
    return ElasticsearchBackend(get_client(), chunk_size=settings.bulk_chunk_size)
