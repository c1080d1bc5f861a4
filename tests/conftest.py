"""Shared fixtures: an in-memory stand-in for the Elasticsearch backend."""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Iterable, Sequence

import pytest

from product_search.backend import BulkOutcome
from product_search.config import Settings
from product_search.errors import BackendUnavailableError, BulkItemFailure


def make_hit(doc_id: str, brand: str, name: str, price: float, score: float = 1.0) -> dict:
    return {"_id": doc_id, "_score": score, "_source": {"brand": brand, "name": name, "price": price, "skus": []}}


def make_raw_response(hits: Sequence[dict], total: int | None = None, relation: str = "eq") -> dict:
    def buckets(*pairs: tuple[str, int]) -> dict:
        return {"buckets": [{"key": key, "doc_count": count} for key, count in pairs]}

    return {
        "took": 3,
        "hits": {"total": {"value": len(hits) if total is None else total, "relation": relation}, "hits": list(hits)},
        "aggregations": {
            "brand": buckets(("Calvin Klein", 4), ("Levi's", 4)),
            "price": buckets(("Cheap", 2), ("Average", 6), ("Expensive", 0)),
            "color_nested": {"doc_count": 20, "color": buckets(("Blue", 8), ("Black", 7), ("Red", 1), ("White", 1))},
            "size_nested": {"doc_count": 20, "size": buckets(("L", 8), ("M", 8), ("S", 6))},
        },
    }


class FakeBackend:
    """Records every call and keeps indices/aliases in dictionaries."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.indices: dict[str, list[dict]] = {}
        self.schemas: dict[str, tuple[dict, dict]] = {}
        self.aliases: dict[str, set[str]] = {}
        self.ranked_hits: list[dict] = []
        self.raw_response: dict | None = None
        self.errors: dict[str, Exception] = {}
        self.acknowledge: dict[str, bool] = {}
        self.failing_positions: set[int] = set()

    def _call(self, operation: str, payload: Any = None) -> None:
        self.calls.append((operation, payload))
        if operation in self.errors:
            raise self.errors[operation]

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def create_collection(self, name: str, settings: dict, mappings: dict) -> bool:
        self._call("create_collection", name)
        if not self.acknowledge.get("create_collection", True):
            return False
        self.indices[name] = []
        self.schemas[name] = (settings, mappings)
        return True

    def bulk_write(self, name: str, documents: Sequence[dict]) -> BulkOutcome:
        self._call("bulk_write", (name, len(documents)))
        outcome = BulkOutcome()
        for position, document in enumerate(documents):
            if position in self.failing_positions:
                identifier = str(document.get("id") or f"#{position}")
                outcome.failures.append(BulkItemFailure(identifier, "mapper_parsing_exception: bad price"))
                continue
            self.indices[name].append(document)
            outcome.indexed += 1
        return outcome

    def analyze(self, index: str, analyzer: str, text: str) -> list[str]:
        self._call("analyze", (index, analyzer, text))
        return [token for token in re.split(r"[^\w']+", text.lower()) if token]

    def search(self, index: str, **kwargs: Any) -> dict:
        self._call("search", {"index": index, **kwargs})
        if self.raw_response is not None:
            return self.raw_response
        start, size = kwargs["from_"], kwargs["size"]
        return make_raw_response(self.ranked_hits[start:start + size], total=len(self.ranked_hits))

    def get_alias_targets(self, alias: str) -> set[str]:
        self._call("get_alias_targets", alias)
        return set(self.aliases.get(alias, set()))

    def swap_alias(self, remove: Iterable[tuple[str, str]], add: Iterable[tuple[str, str]]) -> bool:
        remove, add = list(remove), list(add)
        self._call("swap_alias", (remove, add))
        if not self.acknowledge.get("swap_alias", True):
            return False
        for index, alias in remove:
            self.aliases.setdefault(alias, set()).discard(index)
        for index, alias in add:
            self.aliases.setdefault(alias, set()).add(index)
        return True

    def list_collections(self, pattern: str) -> list[str]:
        self._call("list_collections", pattern)
        prefix = pattern.rstrip("*")
        return sorted(name for name in self.indices if name.startswith(prefix))

    def delete_collections(self, names: Sequence[str]) -> bool:
        self._call("delete_collections", list(names))
        if not self.acknowledge.get("delete_collections", True):
            return False
        for name in names:
            self.indices.pop(name, None)
        return True

    def cluster_status(self) -> str | None:
        self._call("cluster_status")
        return "green"


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config() -> Settings:
    return replace(Settings(), index_alias="product_index", retention_count=3, search_analyzer="text_analyzer")


@pytest.fixture
def unavailable() -> BackendUnavailableError:
    return BackendUnavailableError("connection refused")
