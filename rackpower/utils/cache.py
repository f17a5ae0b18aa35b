# rackpower/utils/cache.py
"""Per-process last-known socket status cache."""

from __future__ import annotations

import zlib
from threading import Lock
from typing import Any

from rackpower.domain.sockets import Status


class StatusCache:
    """
    Last observed ``Status`` per socket ID.

    Entries are never expired; an absent entry means the socket has never
    been observed. Storage is split into lock stripes so writers for
    different sockets do not contend; writers racing on the same socket
    resolve as last-writer-wins.
    """

    def __init__(self, *, stripes: int = 16) -> None:
        """Initialize the cache.
        Args:
            stripes: Number of independently locked partitions
        """
        self._stripe_count = max(1, int(stripes))
        self._stores: list[dict[str, Status]] = [{} for _ in range(self._stripe_count)]
        self._locks: list[Lock] = [Lock() for _ in range(self._stripe_count)]

        # Metrics tracking; shared by every stripe
        self._stats_lock = Lock()
        self._hits = 0
        self._misses = 0
        self._writes = 0

    def _stripe(self, socket_id: str) -> int:
        return zlib.crc32(socket_id.encode("utf-8")) % self._stripe_count

    def get(self, socket_id: str) -> Status | None:
        """Return the last status for ``socket_id`` or None when never observed."""
        idx = self._stripe(socket_id)
        with self._locks[idx]:
            status = self._stores[idx].get(socket_id)
        with self._stats_lock:
            if status is None:
                self._misses += 1
            else:
                self._hits += 1
        return status

    def put(self, socket_id: str, status: Status) -> None:
        """Overwrite the entry for ``socket_id`` unconditionally."""
        idx = self._stripe(socket_id)
        with self._locks[idx]:
            self._stores[idx][socket_id] = status
        with self._stats_lock:
            self._writes += 1

    def snapshot(self) -> dict[str, Status]:
        """Copy of every cached entry."""
        result: dict[str, Status] = {}
        for store, lock in zip(self._stores, self._locks):
            with lock:
                result.update(store)
        return result

    def clear(self) -> None:
        """Clear the entire cache."""
        for store, lock in zip(self._stores, self._locks):
            with lock:
                store.clear()

    def __len__(self) -> int:
        return sum(len(store) for store in self._stores)

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics for monitoring.

        Returns:
            Dictionary with size, hits, misses, hit_rate (0-100) and writes.
        """
        with self._stats_lock:
            hits, misses, writes = self._hits, self._misses, self._writes
        total_requests = hits + misses
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "size": len(self),
            "stripes": self._stripe_count,
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hit_rate, 2),
            "writes": writes,
        }
