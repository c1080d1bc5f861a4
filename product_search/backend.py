"""Capability contract the rebuild and search paths depend on.

Any engine client can back the service as long as it provides these calls.
Implementations raise :class:`~product_search.errors.BackendUnavailableError`
on transport failures and return acknowledgement flags instead of raising for
requests the backend answered but did not acknowledge.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence

from .errors import BulkItemFailure

AliasAction = tuple[str, str]  # (index, alias)


@dataclass
class BulkOutcome:
    indexed: int = 0
    failures: list[BulkItemFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.indexed + len(self.failures)


class SearchBackend(Protocol):
    def create_collection(self, name: str, settings: dict, mappings: dict) -> bool: ...

    def bulk_write(self, name: str, documents: Sequence[dict]) -> BulkOutcome: ...

    def analyze(self, index: str, analyzer: str, text: str) -> list[str]: ...

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
    ) -> dict[str, Any]: ...

    def get_alias_targets(self, alias: str) -> set[str]: ...

    def swap_alias(self, remove: Iterable[AliasAction], add: Iterable[AliasAction]) -> bool: ...

    def list_collections(self, pattern: str) -> list[str]: ...

    def delete_collections(self, names: Sequence[str]) -> bool: ...

    def cluster_status(self) -> str | None: ...
