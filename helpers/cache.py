from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from helpers.datasets import Record

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    records: Tuple[Record, ...]
    timestamp: float


class ResultCache:
    """Fallback results keyed by the lowercased nick that was originally queried.

    Expired entries are left in place and treated as misses on read.
    """

    def __init__(self, ttl: float = 3600.0, clock: Optional[Clock] = None) -> None:
        self.ttl = ttl
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def _is_valid(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.timestamp) < self.ttl

    async def get(self, key: str) -> Optional[List[Record]]:
        async with self._lock:
            entry = self._entries.get(key.lower())
        if entry is None or not self._is_valid(entry):
            logger.debug("Cache miss for %s", key)
            return None
        logger.debug("Cache hit for %s (%d records)", key, len(entry.records))
        return list(entry.records)

    async def put(self, key: str, records: List[Record]) -> None:
        entry = CacheEntry(records=tuple(records), timestamp=self._clock())
        async with self._lock:
            self._entries[key.lower()] = entry
        logger.debug("Cached %d records for %s", len(records), key)

    def __len__(self) -> int:
        return len(self._entries)
