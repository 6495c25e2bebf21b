"""
Ingestion service: collect -> transform -> store.

Each source is collected through the CollectorManager, its raw snapshot is
read back and run through the TransformationPipeline, and the resulting
records are upserted into a RecordSink.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from src.parcelflow.collectors.base import load_raw_snapshot
from src.parcelflow.collectors.manager import CollectorManager
from src.parcelflow.ingestion.sink import InMemoryRecordSink, RecordSink
from src.parcelflow.matching.deduplication import PropertyDeduplicator
from src.parcelflow.models.source import SourceConfig
from src.parcelflow.pipelines.transformation import TransformationPipeline
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SourceReport:
    """Per-source outcome of an ingestion run."""

    source_id: str
    success: bool
    message: str
    collected: int = 0
    processed: int = 0
    failed: int = 0
    stored: int = 0
    raw_data_path: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestionService:
    """Runs sources end to end."""

    def __init__(
        self,
        manager: CollectorManager,
        pipeline: TransformationPipeline | None = None,
        sink: RecordSink | None = None,
        deduplicator: PropertyDeduplicator | None = None,
    ):
        """
        Initialize the service.

        Args:
            manager: Manager with collectors registered and initialized
            pipeline: Transformation pipeline (default: new pipeline)
            sink: Record destination (default: InMemoryRecordSink)
            deduplicator: When set, records of each source are merged by
                parcel id before they are stored
        """
        self.manager = manager
        self.pipeline = pipeline or TransformationPipeline()
        self.sink = sink if sink is not None else InMemoryRecordSink()
        self.deduplicator = deduplicator

    async def run(self, sources: Sequence[SourceConfig]) -> List[SourceReport]:
        """
        Collect, transform and store every source.

        Returns:
            One report per source, in input order
        """
        results = await self.manager.execute_collections(sources)

        reports = []
        for source, result in zip(sources, results):
            if not result.success:
                reports.append(SourceReport(source_id=source.id, success=False, message=result.message))
                continue
            reports.append(await self.ingest_snapshot(source, result.raw_data_path, result.message))

        logger.info(
            "ingestion_complete",
            sources=len(reports),
            successful=sum(1 for r in reports if r.success),
            stored=sum(r.stored for r in reports),
        )

        return reports

    async def ingest_snapshot(
        self,
        source: SourceConfig,
        raw_data_path: Optional[str],
        message: str = "",
    ) -> SourceReport:
        """Transform and store the records of one raw snapshot."""
        report = SourceReport(source_id=source.id, success=True, message=message, raw_data_path=raw_data_path)

        if not raw_data_path:
            logger.warning("raw_snapshot_missing", source_id=source.id)
            return report

        try:
            raws = await asyncio.to_thread(load_raw_snapshot, raw_data_path)
        except (OSError, ValueError) as e:
            logger.error("raw_snapshot_unreadable", source_id=source.id, path=raw_data_path, error=str(e))
            report.success = False
            report.message = f"Could not read raw snapshot: {e}"
            return report

        report.collected = len(raws)

        batch = await asyncio.to_thread(self.pipeline.process_batch, raws, source.collector_type)
        report.processed = len(batch.records)
        report.failed = len(batch.failures)
        report.errors = [f"record {idx}: {error}" for idx, error in batch.failures]

        records = batch.records
        if self.deduplicator is not None:
            records = self.deduplicator.deduplicate(records)

        for record in records:
            self.sink.upsert(record)
        report.stored = len(records)

        logger.info(
            "source_ingested",
            source_id=source.id,
            collected=report.collected,
            processed=report.processed,
            failed=report.failed,
            stored=report.stored,
        )

        return report
