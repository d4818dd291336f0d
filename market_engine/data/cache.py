from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from market_engine.data.models import OIData, ZERO_OI
from market_engine.utils.logger import get_logger
from market_engine.utils.rwlock import ReadWriteLock

logger = get_logger(__name__)

OI_AVERAGE_FACTOR = 0.999


class OpenInterestCache:
    """
    Whole-market open-interest table with a freshness window.

    One bulk call refreshes every symbol. Readers share the lock while the table is
    fresh; on a miss the writer re-checks freshness after taking the exclusive lock,
    so concurrent callers collapse into a single upstream refresh.
    The table is only ever replaced wholesale.
    """

    def __init__(
        self,
        fetch_table: Callable[[], Dict[str, float]],
        ttl_sec: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_table = fetch_table
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._lock = ReadWriteLock()
        self._table: Dict[str, float] = {}
        self._refreshed_at: Optional[float] = None

    @property
    def size(self) -> int:
        with self._lock.read_locked():
            return len(self._table)

    def _fresh(self) -> bool:
        # Caller holds the lock.
        if self._refreshed_at is None:
            return False
        return (self._clock() - self._refreshed_at) < self._ttl_sec

    def is_fresh(self) -> bool:
        with self._lock.read_locked():
            return self._fresh()

    def _lookup(self, symbol: str) -> OIData:
        oi = self._table.get(symbol)
        if oi is None:
            # Untracked symbol: unknown, not an error.
            return ZERO_OI
        return OIData(latest=oi, average=oi * OI_AVERAGE_FACTOR)

    def get(self, symbol: str) -> OIData:
        with self._lock.read_locked():
            if self._fresh():
                return self._lookup(symbol)

        with self._lock.write_locked():
            # Another caller may have refreshed while we waited.
            if self._fresh():
                return self._lookup(symbol)

            # Errors propagate; the previous table and timestamp are left untouched.
            table = self._fetch_table()
            self._table = dict(table)
            self._refreshed_at = self._clock()
            logger.debug("OI_CACHE_REFRESH | symbols=%d", len(self._table))
            return self._lookup(symbol)

    def invalidate(self) -> None:
        with self._lock.write_locked():
            self._refreshed_at = None
