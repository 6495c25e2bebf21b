"""
ArcGIS Parcel Collector

Fetches parcel features from an ArcGIS REST FeatureServer/MapServer layer
query endpoint.
"""
import asyncio
from typing import Any, Dict, List, Optional

from config.settings import settings
from src.parcelflow.exceptions import CollectionError, CollectionErrorType
from src.parcelflow.models.property import RawRecord
from src.parcelflow.models.source import SourceConfig
from src.parcelflow.collectors.base import BaseCollector
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)

PARCEL_CHUNK_SIZE = 25
CHUNK_DELAY_SECONDS = 0.5


class ArcGISParcelCollector(BaseCollector):
    """
    Collector for ArcGIS parcel layers.

    Source metadata options:
        where: Query filter (default '1=1')
        outFields: Comma separated attribute list (default '*')
        parcelField: Attribute holding the parcel identifier (default 'PARCEL')
        parcelNumbers: Only fetch these parcels; large lists are chunked
        fieldMap: Attribute name -> raw record key renames
        limit: resultRecordCount for unchunked queries

    Layers that cap responses at their maxRecordCount are paged with
    resultOffset until exceededTransferLimit is no longer set.
    """

    collector_type = "arcgis-feature-service"
    name = "ArcGIS Parcel Collector"
    supported_source_types = ("arcgis",)

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        """
        Initialize the collector.

        Args:
            base_url: Layer query URL for sources without a url
                (default from settings)
        """
        self.base_url = base_url or settings.arcgis_parcels_url
        super().__init__(**kwargs)

    def validate_source(self, source: SourceConfig):
        valid, message = super().validate_source(source)
        if not valid:
            return valid, message

        if not (source.url or self.base_url):
            return False, "ArcGIS sources require a layer query url"

        return True, None

    async def fetch_records(self, source: SourceConfig) -> List[RawRecord]:
        options = source.metadata
        parcel_numbers = [str(p) for p in options.get("parcelNumbers") or []]

        logger.info(
            "fetching_parcels",
            source_id=source.id,
            limit=options.get("limit") or "all",
            parcel_filter=len(parcel_numbers) if parcel_numbers else "none",
        )

        if len(parcel_numbers) > PARCEL_CHUNK_SIZE:
            logger.info("chunking_large_parcel_list", total=len(parcel_numbers), chunk_size=PARCEL_CHUNK_SIZE)
            records: List[RawRecord] = []
            for i in range(0, len(parcel_numbers), PARCEL_CHUNK_SIZE):
                if i:
                    await asyncio.sleep(CHUNK_DELAY_SECONDS)
                chunk = parcel_numbers[i:i + PARCEL_CHUNK_SIZE]
                logger.info("fetching_chunk", chunk_num=i // PARCEL_CHUNK_SIZE + 1, chunk_size=len(chunk))
                records.extend(await self._fetch_batch(source, chunk, None))
            return records

        return await self._fetch_batch(source, parcel_numbers, options.get("limit"))

    def build_params(
        self,
        source: SourceConfig,
        parcel_numbers: Optional[List[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Query parameters for one request."""
        options = source.metadata
        where_clause = options.get("where") or "1=1"
        if parcel_numbers:
            parcel_list = "','".join(p.replace("'", "''") for p in parcel_numbers)
            where_clause = f"{options.get('parcelField', 'PARCEL')} IN ('{parcel_list}')"

        params: Dict[str, Any] = {
            "where": where_clause,
            "outFields": options.get("outFields") or "*",
            "outSR": 4326,
            "f": "json",
            "returnGeometry": "true",
        }

        if limit:
            params["resultRecordCount"] = int(limit)

        if offset:
            params["resultOffset"] = offset

        return params

    async def _fetch_batch(
        self,
        source: SourceConfig,
        parcel_numbers: Optional[List[str]],
        limit: Optional[int],
    ) -> List[RawRecord]:
        records: List[RawRecord] = []
        while True:
            remaining = int(limit) - len(records) if limit else None
            params = self.build_params(source, parcel_numbers, remaining, len(records))
            json_data = await self._fetch_page(source, params)
            page = self.parse_features(json_data, source)
            records.extend(page)

            if not json_data.get("exceededTransferLimit") or not page:
                break
            if limit and len(records) >= int(limit):
                break
            logger.info("fetching_next_page", source_id=source.id, offset=len(records))

        return records

    async def _fetch_page(self, source: SourceConfig, params: Dict[str, Any]) -> Dict[str, Any]:
        url = source.url or self.base_url
        response = await asyncio.to_thread(self.fetch, url, params)

        try:
            json_data = response.json()
        except ValueError as e:
            raise CollectionError(
                f"Invalid JSON from ArcGIS service: {e}",
                CollectionErrorType.PARSING_ERROR,
                self.collector_type,
            ) from e

        if "error" in json_data:
            error = json_data["error"]
            raise CollectionError(
                f"ArcGIS service error: {error.get('message', error)}",
                CollectionErrorType.PARSING_ERROR,
                self.collector_type,
            )

        return json_data

    def parse_features(self, json_data: dict, source: SourceConfig) -> List[RawRecord]:
        """
        Flatten features into raw records.

        Attributes are renamed through the source fieldMap; point geometry
        becomes latitude/longitude unless the attributes already carry them.
        """
        field_map: Dict[str, str] = source.metadata.get("fieldMap") or {}
        records = []

        for feature in json_data.get("features", []):
            attrs = feature.get("attributes") or {}
            geometry = feature.get("geometry") or {}

            record: RawRecord = self.base_record(source)
            for key, value in attrs.items():
                record[field_map.get(key, key)] = value

            if record.get("latitude") is None and geometry.get("y") is not None:
                record["latitude"] = geometry["y"]
            if record.get("longitude") is None and geometry.get("x") is not None:
                record["longitude"] = geometry["x"]

            records.append(record)

        logger.info("features_parsed", source_id=source.id, features=len(records))
        return records
