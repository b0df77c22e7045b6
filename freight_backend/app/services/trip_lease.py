"""
Trip lease service.

Serializes balance-affecting mutations of a single trip. Reads never take
the lease.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict

from freight_backend.app.core.config import settings
from freight_backend.app.core.exceptions import ConflictError

logger = logging.getLogger("freight.lease")


class TripLeaseManager:
    """
    Per-trip exclusive lease.

    backend="memory" uses one asyncio.Lock per trip (single process).
    backend="redis" uses a Redis lock with a TTL so a crashed holder cannot
    wedge the trip forever.
    """

    def __init__(self, backend: str = "memory", redis=None, ttl_seconds: int = 30):
        self.backend = backend
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self._locks: Dict[int, asyncio.Lock] = {}
        self._holders: Dict[int, int] = {}

    @asynccontextmanager
    async def _local_lease(self, trip_id: int):
        lock = self._locks.get(trip_id)
        if lock is None:
            lock = self._locks[trip_id] = asyncio.Lock()
        # Holders and waiters both count, so the lock is dropped only when idle
        self._holders[trip_id] = self._holders.get(trip_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[trip_id] -= 1
            if not self._holders[trip_id]:
                del self._holders[trip_id]
                del self._locks[trip_id]

    @asynccontextmanager
    async def acquire(self, trip_id: int):
        if self.backend == "redis":
            lock = self.redis.lock(
                f"trip_lease:{trip_id}",
                timeout=self.ttl_seconds,
                blocking_timeout=self.ttl_seconds,
            )
            acquired = await lock.acquire()
            if not acquired:
                raise ConflictError("Trip is busy, retry the request", details={"trip_id": trip_id})
            try:
                yield
            finally:
                try:
                    await lock.release()
                except Exception as e:
                    # Lease expired under us; the version check still guards the write
                    logger.warning("Trip lease %s release failed: %s", trip_id, e)
            return

        async with self._local_lease(trip_id):
            yield


_lease_manager: TripLeaseManager = None


def get_trip_lease_manager() -> TripLeaseManager:
    global _lease_manager
    if _lease_manager is None:
        redis = None
        if settings.trip_lease_backend == "redis":
            from freight_backend.app.core.redis_client import redis_client
            redis = redis_client
        _lease_manager = TripLeaseManager(
            backend=settings.trip_lease_backend,
            redis=redis,
            ttl_seconds=settings.trip_lease_ttl_seconds,
        )
    return _lease_manager
