"""Error kinds raised by the rebuild and search paths."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class ProductSearchError(Exception):
    """Base class for every failure surfaced by this package.

    ``stage`` is filled in by the lifecycle manager when the error aborts a
    rebuild, so callers can tell a pre-cutover failure from a later one.
    """

    stage: str | None = None


class ConfigurationError(ProductSearchError):
    """A schema or data resource is missing, unreadable or invalid."""


class SchemaRejectedError(ProductSearchError):
    """The backend refused the index settings or mappings."""


class BackendUnavailableError(ProductSearchError):
    """Network or backend failure on any call."""


@dataclass(frozen=True)
class BulkItemFailure:
    identifier: str
    reason: str


class BulkWritePartialFailureError(ProductSearchError):
    def __init__(self, index: str, failures: Sequence[BulkItemFailure], total: int) -> None:
        self.index = index
        self.failures = list(failures)
        self.total = total
        ids = ", ".join(f.identifier for f in self.failures[:10])
        more = "" if len(self.failures) <= 10 else f" (+{len(self.failures) - 10} more)"
        super().__init__(
            f"{len(self.failures)} of {total} documents failed to index into {index}: {ids}{more}"
        )

    @property
    def failed_identifiers(self) -> list[str]:
        return [f.identifier for f in self.failures]


class AliasSwapNotAcknowledgedError(ProductSearchError):
    """The alias update was not acknowledged; the previous generation still serves."""


class RebuildInProgressError(ProductSearchError):
    """Another rebuild holds the rebuild lock."""


class SearchFailedError(ProductSearchError):
    """Analyzer, search or response-mapping failure on the search path."""


class PruneFailureWarning(UserWarning):
    """Old generations could not be deleted. The rebuild itself succeeded."""

    def __init__(self, indices: Sequence[str], reason: str) -> None:
        self.indices = list(indices)
        self.reason = reason
        super().__init__(f"Failed to delete old generations {', '.join(self.indices)}: {reason}")
