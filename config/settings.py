"""
Configuration Settings

Centralized configuration management using Pydantic and environment variables.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values should be stored in .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Collection orchestration
    collector_rate_limit_delay: float = 1.0  # seconds between overlapping collections
    max_concurrent_collections: int = 3

    # Raw snapshot artifact store
    raw_data_dir: str = "data/raw"

    # HTTP settings shared by collectors and providers
    http_timeout_seconds: int = 30
    http_user_agent: str = "parcelflow/1.0 (+property-data-ingestion)"

    # Source endpoints
    st_marys_base_url: str = "https://stmarysmd.gov/treasurer/realproperty/"
    arcgis_parcels_url: Optional[str] = None
    sdat_details_url: str = "https://sdat.dat.maryland.gov/RealProperty/Pages/viewdetails.aspx"
    sdat_county_code: str = "19"
    sdat_request_delay: float = 0.5

    # Geocoding
    geocoding_provider: str = "simulated"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    geocoding_cache_max_size: int = 10000
    geocoding_cache_eviction_fraction: float = 0.1
    geocoding_base_latitude: float = 39.0458
    geocoding_base_longitude: float = -76.6413
    geocoding_default_confidence: float = 0.8

    # Fuzzy matching
    fuzzy_match_threshold: float = 0.8
    fuzzy_search_threshold: float = 0.7

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"

    # Application settings
    environment: str = "development"
    debug: bool = False


# Singleton instance
settings = Settings()
