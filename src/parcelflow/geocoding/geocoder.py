"""
Geocoder

Resolves addresses to coordinates through a pluggable provider, caching
results per address.
"""
from typing import Optional

from src.parcelflow.exceptions import GeocodingError
from src.parcelflow.geocoding.cache import GeocodingCache
from src.parcelflow.geocoding.providers import GeocodingProvider, build_provider
from src.parcelflow.models.geocoding import GeocodingResult
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)


class Geocoder:
    """
    Cache-first address geocoder.

    Each Geocoder owns its cache; share one instance between consumers when a
    process-wide cache is wanted.
    """

    def __init__(
        self,
        provider: Optional[GeocodingProvider] = None,
        cache: Optional[GeocodingCache] = None,
    ):
        """
        Initialize the geocoder.

        Args:
            provider: Geocoding provider (default from settings)
            cache: Result cache (default: a new bounded cache)
        """
        self.provider = provider or build_provider()
        self.cache = cache if cache is not None else GeocodingCache()
        logger.info(
            "geocoder_initialized",
            provider=type(self.provider).__name__,
            cache_max_size=self.cache.max_size,
        )

    def geocode(self, address: Optional[str]) -> Optional[GeocodingResult]:
        """
        Geocode an address.

        Args:
            address: Single-line address

        Returns:
            GeocodingResult, or None for empty input, no match, or provider failure
        """
        if not address or not address.strip():
            logger.warning("geocode_empty_address")
            return None

        cached = self.cache.get(address)
        if cached is not None:
            return cached

        try:
            result = self.provider.geocode(address.strip())
        except GeocodingError as e:
            logger.error("geocoding_failed", address=address[:80], error=str(e))
            return None

        if result is not None:
            self.cache.set(address, result)

        return result

    def clear_cache(self) -> None:
        """Drop all cached results."""
        self.cache.clear()

    def cache_size(self) -> int:
        """Number of cached addresses."""
        return self.cache.size()

    def cache_stats(self) -> dict:
        """Hit/miss statistics of the underlying cache."""
        return self.cache.stats()
