"""
Collector Interface

DataCollector is the contract the CollectorManager drives. BaseCollector
implements it for HTTP sources: an availability probe, source validation, a
raw snapshot of every run, and conversion of every internal error into a
failed CollectionResult.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from config.settings import settings
from src.parcelflow.exceptions import CollectionError, CollectionErrorType
from src.parcelflow.models.collection import CollectionResult, utc_now
from src.parcelflow.models.property import RawRecord
from src.parcelflow.models.source import SourceConfig
from src.parcelflow.transformers.standardizers import AliasResolver, text
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)


class DataCollector(ABC):
    """
    Fetches raw property records from one kind of external source.

    collect() must never raise: every failure is reported as a
    CollectionResult with success=False.
    """

    @abstractmethod
    def get_type(self) -> str:
        """Collector type identifier matched against SourceConfig.collector_type."""

    @abstractmethod
    async def initialize(self) -> None:
        """Probe the source and set availability. Must not raise."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the last probe succeeded."""

    @abstractmethod
    async def collect(self, source: SourceConfig) -> CollectionResult:
        """Collect records for a source."""

    def validate_source(self, source: SourceConfig) -> Tuple[bool, Optional[str]]:
        """Check a source configuration before collecting."""
        return True, None


def snapshot_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC timestamp for snapshot names, e.g. '2024-03-01T14-05-09.123Z'."""
    moment = moment or utc_now()
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{moment.microsecond // 1000:03d}Z".replace(":", "-")


def load_raw_snapshot(path: str) -> List[RawRecord]:
    """Read the raw records written by a collection run."""
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


class BaseCollector(DataCollector):
    """
    Shared implementation for HTTP-backed collectors.

    Subclasses set collector_type/name/supported_source_types and implement
    fetch_records(). Blocking requests calls run in worker threads so many
    collections can overlap on one event loop.
    """

    collector_type: str = ""
    name: str = ""
    supported_source_types: Tuple[str, ...] = ()

    def __init__(
        self,
        output_dir: Optional[str] = None,
        session: Optional[requests.Session] = None,
        probe_url: Optional[str] = None,
    ):
        """
        Initialize the collector.

        Args:
            output_dir: Directory for raw snapshots (default from settings)
            session: HTTP session (for testing)
            probe_url: URL checked by initialize(); no probe when None
        """
        self.output_dir = Path(output_dir or settings.raw_data_dir)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.http_user_agent})
        self.probe_url = probe_url
        self._available = False
        logger.info("collector_created", collector_type=self.collector_type, output_dir=str(self.output_dir))

    def get_type(self) -> str:
        return self.collector_type

    def is_available(self) -> bool:
        return self._available

    async def initialize(self) -> None:
        try:
            self._available = await asyncio.to_thread(self._probe)
        except Exception as e:
            self._available = False
            logger.error(
                "collector_initialization_failed",
                collector_type=self.collector_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if self._available:
            logger.info("collector_initialized", collector_type=self.collector_type)
        else:
            logger.error("collector_source_unreachable", collector_type=self.collector_type, url=self.probe_url)

    def _probe(self) -> bool:
        if not self.probe_url:
            return True
        response = self.session.get(self.probe_url, timeout=settings.http_timeout_seconds)
        return response.status_code == 200

    def validate_source(self, source: SourceConfig) -> Tuple[bool, Optional[str]]:
        if self.supported_source_types and source.type not in self.supported_source_types:
            return False, (
                f"Source type '{source.type}' is not supported by this collector. "
                f"Supported types: {', '.join(self.supported_source_types)}"
            )
        return True, None

    async def collect(self, source: SourceConfig) -> CollectionResult:
        if not self.is_available():
            return CollectionResult.failure(
                source.id,
                "Collector is not available. Initialize first.",
                CollectionErrorType.SOURCE_UNAVAILABLE,
            )

        valid, message = self.validate_source(source)
        if not valid:
            logger.warning("source_validation_failed", source_id=source.id, message=message)
            return CollectionResult.failure(source.id, message, CollectionErrorType.INVALID_SOURCE)

        try:
            records = await self.fetch_records(source)
            raw_data_path = await asyncio.to_thread(self.save_raw_snapshot, records, source)
        except CollectionError as e:
            logger.error(
                "collection_failed",
                source_id=source.id,
                error=str(e),
                error_type=e.error_type.value,
            )
            return CollectionResult.failure(source.id, f"Collection failed: {e}", e.error_type)
        except Exception as e:
            logger.error(
                "collection_failed",
                source_id=source.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return CollectionResult.failure(source.id, f"Collection failed: {e}")

        record_ids = [self.record_id(record) for record in records]

        logger.info("collection_complete", source_id=source.id, total_records=len(records))

        return CollectionResult(
            success=True,
            message=f"Successfully collected {len(records)} records from {self.name or self.collector_type}",
            data=record_ids,
            source_id=source.id,
            metadata={
                "rawDataPath": raw_data_path,
                "totalRecords": len(records),
                "collectorType": self.collector_type,
            },
        )

    @abstractmethod
    async def fetch_records(self, source: SourceConfig) -> List[RawRecord]:
        """
        Fetch raw records for a source.

        Raises:
            CollectionError: On connection, parsing or storage problems
        """

    def record_id(self, record: RawRecord) -> str:
        """Identifier reported in CollectionResult.data for a raw record."""
        return text(AliasResolver(record).get("parcel_id"))

    def base_record(self, source: SourceConfig) -> Dict[str, Any]:
        """Provenance fields every raw record starts with."""
        return {"source": source.source_tag(), "collectedAt": utc_now().isoformat()}

    def save_raw_snapshot(self, records: List[RawRecord], source: SourceConfig) -> str:
        """
        Write the fetched records to '{type}_{sourceId}_{timestamp}.json'.

        Returns:
            Path of the snapshot file
        """
        filename = f"{self.get_type()}_{source.id}_{snapshot_timestamp()}.json"
        path = self.output_dir / filename

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, default=str)
        except OSError as e:
            raise CollectionError(
                f"Failed to save raw snapshot: {e}",
                CollectionErrorType.STORAGE_ERROR,
                self.collector_type,
            ) from e

        logger.info("raw_snapshot_saved", path=str(path), records=len(records))
        return str(path)

    def fetch(self, url: str, params: Optional[dict] = None) -> requests.Response:
        """
        Blocking GET with error translation. Call through asyncio.to_thread.

        Raises:
            CollectionError: On any request failure
        """
        try:
            response = self.session.get(url, params=params, timeout=settings.http_timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error("api_request_failed", url=url, error=str(e), error_type=type(e).__name__)
            raise CollectionError(
                f"Failed to fetch {url}: {e}",
                CollectionErrorType.CONNECTION_ERROR,
                self.collector_type,
            ) from e

        logger.info("api_request_successful", url=url, status_code=response.status_code)
        return response
