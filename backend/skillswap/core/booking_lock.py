"""
Per-key mutual exclusion for capacity-sensitive booking transitions.

Acceptance on one (offer, slot) key must be serialized; acceptance on
different keys must never contend. Two backends are available:

- ``local``: a process-wide registry of ``threading.Lock`` objects. A key's
  entry lives only while some thread holds or waits for it.
- ``redis``: a ``SET NX EX`` lease shared by every process pointing at the
  same Redis. When Redis cannot be reached the local lock is used instead so
  a single process never runs an unserialized check-and-commit. The fallback
  is counted as ``redis_unavailable`` (or ``error`` when the lease call
  fails).

While on the fallback, accepts are serialized per process only. Across
processes nothing orders them, and capacity then rests on the conditional
UPDATE in ``SessionRequestRepository.accept_if_capacity`` plus the
``FOR UPDATE`` row lock the arbiter takes where the dialect supports it.
On SQLite, which has no row locks, the single-writer database lock
serializes those UPDATEs instead.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterator, Optional
import uuid

from redis import Redis
from redis.exceptions import RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import SlotBusyException

logger = logging.getLogger(__name__)

_LOCAL_LOCKS: Dict[str, "_LocalLockEntry"] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_POLL_INTERVAL_S = 0.05

# Compare-and-delete so a lease that expired and was re-taken is not released.
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def slot_lock_key(offer_id: str, slot_id: Optional[str]) -> str:
    """Key for a group slot, or the whole offer when ``slot_id`` is None."""
    return f"offer:{offer_id}:slot:{slot_id or '*'}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except RedisError as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


class _LocalLockEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


@contextmanager
def _local_lock(key: str, wait_s: float) -> Iterator[None]:
    # Holders and waiters both count as users; the entry goes away with the last one
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(key)
        if entry is None:
            entry = _LOCAL_LOCKS[key] = _LocalLockEntry()
        entry.users += 1
    try:
        if not entry.lock.acquire(timeout=wait_s):
            prometheus_metrics.record_booking_lock("acquire", "timeout")
            raise SlotBusyException(key, wait_s)
        prometheus_metrics.record_booking_lock("acquire", "success")
        try:
            yield
        finally:
            entry.lock.release()
            prometheus_metrics.record_booking_lock("release", "success")
    finally:
        with _LOCAL_LOCKS_GUARD:
            entry.users -= 1
            if entry.users == 0:
                del _LOCAL_LOCKS[key]


def _acquire_redis_lease(client: Redis, key: str, token: str, ttl_s: int, wait_s: float) -> bool:
    deadline = time.monotonic() + wait_s
    namespaced = _namespaced_key(key)
    while True:
        if client.set(namespaced, token, nx=True, ex=ttl_s):
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(_POLL_INTERVAL_S)


def _release_redis_lease(client: Redis, key: str, token: str) -> None:
    try:
        released = client.eval(_RELEASE_SCRIPT, 1, _namespaced_key(key), token)
        prometheus_metrics.record_booking_lock("release", "success" if released else "not_found")
    except RedisError as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_redis_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def _redis_lock(key: str, ttl_s: int, wait_s: float) -> Iterator[None]:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
        logger.warning("booking_lock_falling_back_to_local", extra={"lock_key": key})
        with _local_lock(key, wait_s):
            yield
        return

    token = uuid.uuid4().hex
    try:
        acquired = _acquire_redis_lease(client, key, token, ttl_s, wait_s)
    except RedisError as exc:
        prometheus_metrics.record_booking_lock("acquire", "error")
        logger.warning(
            "booking_lock_redis_acquire_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )
        with _local_lock(key, wait_s):
            yield
        return

    if not acquired:
        prometheus_metrics.record_booking_lock("acquire", "timeout")
        raise SlotBusyException(key, wait_s)

    prometheus_metrics.record_booking_lock("acquire", "success")
    try:
        yield
    finally:
        _release_redis_lease(client, key, token)


@contextmanager
def booking_slot_lock(
    offer_id: str,
    slot_id: Optional[str],
    ttl_s: Optional[int] = None,
    wait_s: Optional[float] = None,
) -> Iterator[str]:
    """
    Hold the mutex for an (offer, slot) key for the duration of the block.

    Raises:
        SlotBusyException: if the key stays held longer than ``wait_s``.
    """
    key = slot_lock_key(offer_id, slot_id)
    ttl = ttl_s if ttl_s is not None else settings.booking_lock_ttl_s
    wait = wait_s if wait_s is not None else settings.booking_lock_wait_s

    if settings.booking_lock_backend == "redis":
        with _redis_lock(key, ttl, wait):
            yield key
    else:
        with _local_lock(key, wait):
            yield key
