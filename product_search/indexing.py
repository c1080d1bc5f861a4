"""Zero-downtime index rebuild behind a stable alias.

A rebuild creates a fresh generation ``<alias>_<epoch-millis>``, loads the
whole catalog into it, repoints the alias in one atomic ``update_aliases``
request and finally prunes generations beyond the retention count. Until the
alias swap succeeds the previous generation keeps serving queries.
"""
from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from .backend import SearchBackend
from .config import Settings, settings as default_settings
from .errors import (
    AliasSwapNotAcknowledgedError,
    BackendUnavailableError,
    BulkWritePartialFailureError,
    ProductSearchError,
    PruneFailureWarning,
)
from .importer import load_products
from .locking import RebuildLock
from .schema import IndexSchema, load_schema

logger = logging.getLogger(__name__)


class RebuildStage(str, Enum):
    IDLE = "idle"
    CREATING_INDEX = "creating_index"
    LOADING = "loading"
    SWITCHING_ALIAS = "switching_alias"
    PRUNING = "pruning"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RebuildResult:
    alias: str
    generation: str
    indexed: int
    previous: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    warnings: list[PruneFailureWarning] = field(default_factory=list)


def current_epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def generation_name(alias: str, epoch_millis: int) -> str:
    return f"{alias}_{epoch_millis}"


def generation_timestamp(alias: str, name: str) -> int | None:
    """Parse the timestamp suffix of a generation, ``None`` for foreign indices."""
    prefix = f"{alias}_"
    if not name.startswith(prefix):
        return None
    suffix = name[len(prefix):]
    return int(suffix) if suffix.isdigit() else None


def select_generations_to_prune(alias: str, names: Sequence[str], keep: int, live: str) -> tuple[list[str], list[str]]:
    """Split generations into (retained, to_delete), newest first.

    Ordering uses the parsed numeric timestamp, so a change in the digit count
    of epoch millis cannot reorder generations.
    """
    stamped = [(ts, name) for name in names if (ts := generation_timestamp(alias, name)) is not None]
    ordered = [name for _, name in sorted(stamped, reverse=True)]
    retained = ordered[:keep]
    if live in ordered and live not in retained:
        retained = [live] + retained[: keep - 1]
    to_delete = [name for name in ordered if name not in retained]
    return retained, to_delete


class IndexLifecycleManager:
    """Runs the create, load, cutover and prune stages of a rebuild.

    Rebuilds must not overlap. Pass a lock from :mod:`product_search.locking`
    when several processes can trigger them.
    """

    def __init__(
        self,
        backend: SearchBackend,
        config: Settings = default_settings,
        *,
        lock: RebuildLock | None = None,
        clock: Callable[[], int] = current_epoch_millis,
        schema_loader: Callable[[Settings], IndexSchema] = load_schema,
    ) -> None:
        self.backend = backend
        self.config = config
        self.lock = lock
        self.clock = clock
        self.schema_loader = schema_loader
        self.stage = RebuildStage.IDLE
        self.failed_stage: RebuildStage | None = None
        self._refresh_lock: Callable[[], None] | None = None

    def rebuild(
        self,
        alias: str | None = None,
        retention_count: int | None = None,
        documents: Sequence[dict] | None = None,
    ) -> RebuildResult:
        alias = alias or self.config.index_alias
        keep = self.config.retention_count if retention_count is None else retention_count
        if keep < 1:
            raise ValueError(f"retention_count must be at least 1, got {keep}")

        guard = self.lock.hold(alias) if self.lock is not None else nullcontext(None)
        with guard as refresh:
            self._refresh_lock = refresh
            try:
                return self._rebuild(alias, keep, documents)
            finally:
                self._refresh_lock = None

    def _rebuild(self, alias: str, keep: int, documents: Sequence[dict] | None) -> RebuildResult:
        self.stage = RebuildStage.IDLE
        self.failed_stage = None

        # Resources are read before the backend is contacted.
        try:
            schema = self.schema_loader(self.config)
            if documents is None:
                documents = load_products(self.config.products_path)
        except ProductSearchError as exc:
            self._fail(exc)
            raise

        new_index = generation_name(alias, self.clock())
        logger.info("Rebuilding %s into %s with %s documents", alias, new_index, len(documents))

        self._enter(RebuildStage.CREATING_INDEX)
        try:
            self._check_lock()
            if not self.backend.create_collection(new_index, schema.settings, schema.mappings):
                raise BackendUnavailableError(f"Creating index not acknowledged for indexName: {new_index}")
        except ProductSearchError as exc:
            self._fail(exc)
            raise
        logger.info("Index %s has been created.", new_index)

        self._enter(RebuildStage.LOADING)
        try:
            self._check_lock()
            outcome = self.backend.bulk_write(new_index, documents)
            if outcome.failures:
                raise BulkWritePartialFailureError(new_index, outcome.failures, outcome.total)
            # Last chance to back out while the new generation is still unbound.
            self._check_lock()
        except ProductSearchError as exc:
            self._fail(exc)
            self._discard(new_index)
            raise

        # An unacknowledged swap may still have been applied, so the new
        # generation is left in place for the next prune to sort out.
        self._enter(RebuildStage.SWITCHING_ALIAS)
        try:
            previous = sorted(self.backend.get_alias_targets(alias) - {new_index})
            remove = [(index, alias) for index in previous]
            if not self.backend.swap_alias(remove=remove, add=[(new_index, alias)]):
                raise AliasSwapNotAcknowledgedError(
                    f"Alias {alias} swap to {new_index} not acknowledged; {previous or 'nothing'} still bound"
                )
        except ProductSearchError as exc:
            self._fail(exc)
            raise
        logger.info("Alias %s now points to %s (was %s)", alias, new_index, previous or "unbound")

        result = RebuildResult(alias=alias, generation=new_index, indexed=outcome.indexed, previous=previous)
        self._enter(RebuildStage.PRUNING)
        self._prune(alias, keep, result)
        self._enter(RebuildStage.DONE)
        return result

    def _prune(self, alias: str, keep: int, result: RebuildResult) -> None:
        try:
            names = self.backend.list_collections(f"{alias}_*")
        except BackendUnavailableError as exc:
            self._warn(result, PruneFailureWarning([], str(exc)))
            return

        retained, to_delete = select_generations_to_prune(alias, names, keep, result.generation)
        result.retained = retained
        if not to_delete:
            return
        try:
            acknowledged = self.backend.delete_collections(to_delete)
        except BackendUnavailableError as exc:
            self._warn(result, PruneFailureWarning(to_delete, str(exc)))
            return
        if not acknowledged:
            self._warn(result, PruneFailureWarning(to_delete, "delete not acknowledged"))
            return
        result.deleted = to_delete
        logger.info("Deleted old generations of %s: %s", alias, ", ".join(to_delete))

    def _discard(self, index: str) -> None:
        """Drop a generation that never got bound to the alias."""
        try:
            self.backend.delete_collections([index])
        except BackendUnavailableError as exc:
            logger.warning("Could not delete abandoned generation %s: %s", index, exc)

    def _enter(self, stage: RebuildStage) -> None:
        logger.debug("Rebuild stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _check_lock(self) -> None:
        if self._refresh_lock is not None:
            self._refresh_lock()

    def _fail(self, exc: ProductSearchError) -> None:
        exc.stage = self.stage.value
        self.failed_stage = self.stage
        self.stage = RebuildStage.FAILED
        logger.error("Rebuild failed during %s: %s", exc.stage, exc)

    @staticmethod
    def _warn(result: RebuildResult, warning: PruneFailureWarning) -> None:
        logger.warning("%s", warning)
        result.warnings.append(warning)
