"""
Geocoding Package

Address to coordinate resolution behind a bounded cache.
"""
from src.parcelflow.geocoding.cache import GeocodingCache
from src.parcelflow.geocoding.geocoder import Geocoder
from src.parcelflow.geocoding.providers import (
    GeocodingProvider,
    NominatimGeocodingProvider,
    SimulatedGeocodingProvider,
    build_provider,
)

__all__ = [
    "GeocodingCache",
    "Geocoder",
    "GeocodingProvider",
    "NominatimGeocodingProvider",
    "SimulatedGeocodingProvider",
    "build_provider",
]
