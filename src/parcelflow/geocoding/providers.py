"""
Geocoding Providers

Providers resolve a single address to coordinates. The Geocoder depends only
on the GeocodingProvider protocol, so a production service can replace the
simulated provider without touching the pipeline.
"""
from typing import Optional, Protocol

import requests

from config.settings import settings
from src.parcelflow.exceptions import GeocodingError
from src.parcelflow.models.geocoding import GeocodingResult
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)


class GeocodingProvider(Protocol):
    """Resolves an address to coordinates, or None when it cannot."""

    def geocode(self, address: str) -> Optional[GeocodingResult]:
        ...


def simple_hash(value: str) -> int:
    """
    Deterministic 32-bit string hash (h = h * 31 + c, wrapped to a signed
    32-bit integer), returned as a non-negative number.
    """
    h = 0
    for char in value:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class SimulatedGeocodingProvider:
    """
    Placeholder provider producing stable pseudo-coordinates.

    The same address always maps to the same point within about half a degree
    of the configured base coordinates.
    """

    def __init__(
        self,
        base_latitude: Optional[float] = None,
        base_longitude: Optional[float] = None,
        confidence: Optional[float] = None,
    ):
        self.base_latitude = base_latitude if base_latitude is not None else settings.geocoding_base_latitude
        self.base_longitude = base_longitude if base_longitude is not None else settings.geocoding_base_longitude
        self.confidence = confidence if confidence is not None else settings.geocoding_default_confidence

    def geocode(self, address: str) -> Optional[GeocodingResult]:
        if not address or not address.strip():
            logger.warning("simulated_geocoding_empty_address")
            return None

        safe_address = address.strip()
        offset = (simple_hash(safe_address) % 1000) / 1000 - 0.5

        result = GeocodingResult(
            latitude=self.base_latitude + offset,
            longitude=self.base_longitude + offset * 1.5,
            formatted_address=safe_address,
            confidence=self.confidence,
        )

        logger.debug("address_geocoded_simulated", address=safe_address[:80])
        return result


class NominatimGeocodingProvider:
    """
    OpenStreetMap Nominatim provider.

    Uses the public search endpoint; respect its usage policy (one request per
    second, identifying User-Agent).
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url or settings.nominatim_url
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.http_user_agent})
        logger.info("nominatim_provider_initialized", base_url=self.base_url)

    def geocode(self, address: str) -> Optional[GeocodingResult]:
        params = {"q": address, "format": "json", "limit": 1}

        try:
            response = self.session.get(self.base_url, params=params, timeout=settings.http_timeout_seconds)
            response.raise_for_status()
            matches = response.json()
        except (requests.RequestException, ValueError) as e:
            raise GeocodingError(f"Nominatim request failed: {e}") from e

        if not matches:
            logger.info("nominatim_no_match", address=address[:80])
            return None

        best = matches[0]
        try:
            return GeocodingResult(
                latitude=float(best["lat"]),
                longitude=float(best["lon"]),
                formatted_address=best.get("display_name", address),
                confidence=min(max(float(best.get("importance", 0.0)), 0.0), 1.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingError(f"Unexpected Nominatim response: {e}") from e


def build_provider(name: Optional[str] = None) -> GeocodingProvider:
    """
    Create the provider named in settings ('simulated' or 'nominatim').
    """
    name = (name or settings.geocoding_provider).lower()
    if name == "simulated":
        return SimulatedGeocodingProvider()
    if name == "nominatim":
        return NominatimGeocodingProvider()
    raise ValueError(f"Unknown geocoding provider '{name}'. Valid options: simulated, nominatim")
