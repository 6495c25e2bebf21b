"""
Geocoding Cache

Bounded address -> GeocodingResult cache owned by a Geocoder instance.
"""
import threading
from itertools import islice
from typing import Dict, Optional

from config.settings import settings
from src.parcelflow.models.geocoding import GeocodingResult
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)


class GeocodingCache:
    """
    Address-keyed cache with approximate LRU eviction.

    When an insertion would exceed max_size, the oldest entries by insertion
    order (roughly eviction_fraction of max_size, at least one) are dropped.
    Reads do not refresh an entry's position. All access is guarded by a lock
    so one cache can be shared between threads.
    """

    def __init__(self, max_size: Optional[int] = None, eviction_fraction: Optional[float] = None):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries (default from settings)
            eviction_fraction: Share of max_size evicted on overflow (default from settings)
        """
        self.max_size = max_size if max_size is not None else settings.geocoding_cache_max_size
        self.eviction_fraction = (
            eviction_fraction if eviction_fraction is not None
            else settings.geocoding_cache_eviction_fraction
        )
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")

        self._entries: Dict[str, GeocodingResult] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(address: str) -> str:
        """Cache key: whitespace-collapsed, case-folded address."""
        return " ".join(address.split()).casefold()

    def get(self, address: str) -> Optional[GeocodingResult]:
        """Return the cached result for an address, or None."""
        key = self.make_key(address)
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                self.misses += 1
            else:
                self.hits += 1
            return result

    def set(self, address: str, result: GeocodingResult) -> None:
        """Store a result, evicting the oldest entries if the cache is full."""
        key = self.make_key(address)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict()
            self._entries[key] = result

    def _evict(self) -> None:
        count = max(1, int(self.max_size * self.eviction_fraction))
        for key in list(islice(self._entries, count)):
            del self._entries[key]
        logger.debug("geocoding_cache_evicted", evicted=count, remaining=len(self._entries))

    def clear(self) -> None:
        """Drop every cached entry and reset statistics."""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
        logger.debug("geocoding_cache_cleared")

    def size(self) -> int:
        """Number of cached addresses."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return self.make_key(address) in self._entries

    def stats(self) -> dict:
        """
        Cache statistics.

        Returns:
            Dictionary with size, capacity, hits, misses and hit rate (percent)
        """
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / max(lookups, 1) * 100,
            }
