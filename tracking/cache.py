"""
In-process memo of recent ranking lookups.

Avoids paying for the same (keyword, location, device, domain) lookup twice
within the TTL. Entries are checked for age on every read, so an expired
entry is never served even if no sweep ran.
"""

from datetime import datetime, timedelta
from typing import Dict, NamedTuple, Optional, Tuple
import logging

from core.clock import Clock, system_clock
from models.base import Device
from schemas.tracking import PositionObservation

logger = logging.getLogger(__name__)


class CacheKey(NamedTuple):
    keyword: str
    location_code: int
    device: Device
    domain: Optional[str]

    @classmethod
    def for_keyword(cls, keyword) -> "CacheKey":
        """Key for a TrackedKeyword row"""
        return cls(
            keyword=keyword.keyword,
            location_code=keyword.location_code,
            device=Device(keyword.device),
            domain=keyword.domain,
        )


class PositionCache:
    """
    TTL cache of PositionObservation keyed by CacheKey.

    Process-local and not shared between workers; one instance is created
    by whoever wires the batch scheduler and may be reused across runs.
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Optional[Clock] = None):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or system_clock
        self._entries: Dict[CacheKey, Tuple[PositionObservation, datetime]] = {}
        self.hits = 0
        self.misses = 0

    def _is_fresh(self, captured_at: datetime) -> bool:
        return self.clock.now() - captured_at < self.ttl

    def get(self, key: CacheKey) -> Optional[PositionObservation]:
        """Return the cached observation, or None if absent or expired"""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        observation, captured_at = entry
        if not self._is_fresh(captured_at):
            del self._entries[key]
            self.misses += 1
            logger.debug(f"Cache entry expired for {key.keyword!r} ({key.location_code}, {key.device.value})")
            return None

        self.hits += 1
        return observation

    def put(self, key: CacheKey, observation: PositionObservation):
        self._entries[key] = (observation, self.clock.now())

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed"""
        expired = [
            key for key, (_, captured_at) in self._entries.items()
            if not self._is_fresh(captured_at)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def clear(self):
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "size": len(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._is_fresh(entry[1])
