"""
Collector Manager

Registry of collectors by type plus bounded, paced execution of collection
runs. Two knobs, both fixed at construction:

    rate_limit_delay: seconds to wait before starting a run while another
        run is in flight
    max_concurrent_collections: ceiling on simultaneous collect() calls

Orchestration failures are always returned as CollectionResult values.
"""
import asyncio
from typing import Dict, List, Optional, Sequence

from config.settings import settings
from src.parcelflow.collectors.base import DataCollector
from src.parcelflow.exceptions import CollectionErrorType
from src.parcelflow.models.collection import CollectionResult
from src.parcelflow.models.source import SourceConfig
from src.parcelflow.utils.logger import collection_context, get_logger

logger = get_logger(__name__)


class CollectorManager:
    """
    Runs collections through registered DataCollectors.

    Admission control uses an asyncio.Semaphore, so waiting runs are woken
    as soon as a slot frees up.
    """

    def __init__(
        self,
        rate_limit_delay: Optional[float] = None,
        max_concurrent_collections: Optional[int] = None,
    ):
        """
        Initialize the manager.

        Args:
            rate_limit_delay: Pacing delay in seconds (default from settings)
            max_concurrent_collections: Parallelism ceiling (default from settings)
        """
        self.rate_limit_delay = (
            settings.collector_rate_limit_delay if rate_limit_delay is None else rate_limit_delay
        )
        self.max_concurrent_collections = (
            settings.max_concurrent_collections
            if max_concurrent_collections is None
            else max_concurrent_collections
        )
        if self.max_concurrent_collections < 1:
            raise ValueError("max_concurrent_collections must be at least 1")
        if self.rate_limit_delay < 0:
            raise ValueError("rate_limit_delay must not be negative")

        self._collectors: Dict[str, DataCollector] = {}
        self._semaphore = asyncio.Semaphore(self.max_concurrent_collections)
        self._active_collections = 0
        self._peak_active_collections = 0

        logger.info(
            "collector_manager_initialized",
            rate_limit_delay=self.rate_limit_delay,
            max_concurrent_collections=self.max_concurrent_collections,
        )

    @property
    def active_collections(self) -> int:
        """Number of collect() calls currently in flight."""
        return self._active_collections

    @property
    def peak_active_collections(self) -> int:
        """Highest number of simultaneous collect() calls observed."""
        return self._peak_active_collections

    def register_collector(self, collector: DataCollector) -> None:
        """Register a collector under its type; a later registration replaces an earlier one."""
        collector_type = collector.get_type()
        if collector_type in self._collectors:
            logger.warning("collector_replaced", collector_type=collector_type)
        self._collectors[collector_type] = collector
        logger.info("collector_registered", collector_type=collector_type)

    def get_collector(self, collector_type: str) -> Optional[DataCollector]:
        return self._collectors.get(collector_type)

    def get_all_collectors(self) -> List[DataCollector]:
        return list(self._collectors.values())

    async def initialize_all_collectors(self) -> None:
        """
        Initialize every registered collector, one at a time.

        A collector that raises is logged and left unavailable; the others
        are still initialized.
        """
        for collector_type, collector in self._collectors.items():
            try:
                await collector.initialize()
            except Exception as e:
                logger.error(
                    "collector_initialization_failed",
                    collector_type=collector_type,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info(
            "collectors_initialized",
            total=len(self._collectors),
            available=sum(1 for c in self._collectors.values() if c.is_available()),
        )

    async def execute_collection(self, source: SourceConfig) -> CollectionResult:
        """
        Run one collection.

        Args:
            source: Source configuration

        Returns:
            CollectionResult; never raises for collection problems
        """
        collector = self._collectors.get(source.collector_type)
        if collector is None:
            logger.error("collector_not_found", source_id=source.id, collector_type=source.collector_type)
            return CollectionResult.failure(
                source.id,
                f"No collector registered for type: {source.collector_type}",
                CollectionErrorType.COLLECTOR_NOT_FOUND,
            )

        if not collector.is_available():
            logger.error("collector_unavailable", source_id=source.id, collector_type=source.collector_type)
            return CollectionResult.failure(
                source.id,
                f"Collector {source.collector_type} is not available",
                CollectionErrorType.SOURCE_UNAVAILABLE,
            )

        with collection_context(source.id, source.collector_type):
            try:
                if self._active_collections > 0 and self.rate_limit_delay:
                    logger.debug("collection_paced", delay=self.rate_limit_delay)
                    await asyncio.sleep(self.rate_limit_delay)

                async with self._semaphore:
                    self._active_collections += 1
                    self._peak_active_collections = max(
                        self._peak_active_collections, self._active_collections
                    )
                    logger.info("collection_started", active_collections=self._active_collections)
                    try:
                        result = await collector.collect(source)
                    finally:
                        self._active_collections -= 1

            except Exception as e:
                logger.error("collection_exception", error=str(e), error_type=type(e).__name__)
                return CollectionResult.failure(source.id, f"Collection failed: {e}")

            logger.info("collection_finished", success=result.success, records=len(result.data))
            return result

    async def execute_collections(self, sources: Sequence[SourceConfig]) -> List[CollectionResult]:
        """
        Run many collections concurrently.

        Returns:
            One result per source, in input order
        """
        logger.info("executing_collections", total=len(sources))

        outcomes = await asyncio.gather(
            *(self.execute_collection(source) for source in sources),
            return_exceptions=True,
        )

        results = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("collection_task_failed", source_id=source.id, error=str(outcome))
                outcome = CollectionResult.failure(source.id, f"Collection failed: {outcome}")
            results.append(outcome)

        logger.info(
            "collections_complete",
            total=len(results),
            successful=sum(1 for r in results if r.success),
        )

        return results
