"""Rebuild serialization with a Redis lock and an in-memory fallback."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, ContextManager, Iterator, Protocol

import redis

from .config import Settings, settings as default_settings
from .errors import RebuildInProgressError

logger = logging.getLogger(__name__)


class RebuildLock(Protocol):
    def hold(self, alias: str) -> ContextManager[Callable[[], None]]: ...


def _no_refresh() -> None:
    return None


@dataclass
class RedisRebuildLock:
    """Cross-instance lock so only one process repoints an alias at a time.

    The lock expires after ``timeout`` seconds. ``hold`` yields a refresh
    callable that resets the expiry; the lifecycle manager calls it on every
    stage change, so only a single stage longer than ``timeout`` can outlive it.
    """

    client: redis.Redis
    timeout: int

    @contextmanager
    def hold(self, alias: str) -> Iterator[Callable[[], None]]:
        lock = self.client.lock(f"rebuild-lock:{alias}", timeout=self.timeout)
        if not lock.acquire(blocking=False):
            raise RebuildInProgressError(f"Another rebuild of {alias} is running")

        def refresh() -> None:
            try:
                lock.reacquire()
            except redis.exceptions.LockError as exc:
                raise RebuildInProgressError(f"Rebuild lock for {alias} was lost: {exc}") from exc

        try:
            yield refresh
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError as exc:
                logger.warning("Rebuild lock for %s expired before release: %s", alias, exc)


class InMemoryRebuildLock:
    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, alias: str) -> Iterator[Callable[[], None]]:
        with self._guard:
            lock = self._locks.setdefault(alias, threading.Lock())
        if not lock.acquire(blocking=False):
            raise RebuildInProgressError(f"Another rebuild of {alias} is running")
        try:
            yield _no_refresh
        finally:
            lock.release()


def get_rebuild_lock(config: Settings = default_settings) -> RebuildLock:
    try:
        client = redis.Redis(host=config.redis_host, port=config.redis_port)
        client.ping()
        logger.info("Using Redis rebuild lock at %s:%s", config.redis_host, config.redis_port)
        return RedisRebuildLock(client, config.rebuild_lock_timeout)
    except redis.RedisError:
        logger.warning("Redis not available, rebuilds are only serialized within this process")
        return InMemoryRebuildLock()
