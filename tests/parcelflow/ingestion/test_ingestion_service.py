"""
Unit tests for IngestionService and record sinks
"""
import json
import threading

import pytest

from src.parcelflow.collectors.base import DataCollector
from src.parcelflow.collectors.manager import CollectorManager
from src.parcelflow.geocoding.geocoder import Geocoder
from src.parcelflow.geocoding.providers import SimulatedGeocodingProvider
from src.parcelflow.ingestion.cli import load_sources, parse_args
from src.parcelflow.ingestion.service import IngestionService
from src.parcelflow.ingestion.sink import InMemoryRecordSink
from src.parcelflow.matching.deduplication import PropertyDeduplicator
from src.parcelflow.models.collection import CollectionResult
from src.parcelflow.models.property import StandardizedRecord
from src.parcelflow.models.source import Region, SourceConfig
from src.parcelflow.pipelines.transformation import TransformationPipeline, TransformationStep

RAW_RECORDS = [
    {
        "accountNumber": "STM100001",
        "ownerName": "DOE JOHN",
        "propertyLocation": "1000 Main Street, Leonardtown, MD 20650",
        "amountDue": 1250.75,
        "source": {"id": "stm-2023", "name": "St. Mary's", "type": "county-website"},
    },
    {
        "accountNumber": "STM100002",
        "propertyLocation": "22 Oak Avenue, California, MD 20619",
        "totalValue": 180000,
        "source": {"id": "stm-2023", "name": "St. Mary's", "type": "county-website"},
    },
]


class SnapshotCollector(DataCollector):
    """Collector that writes a fixed snapshot file"""

    def __init__(self, directory, records, collector_type="st-marys-county-md"):
        self.directory = directory
        self.records = records
        self.collector_type = collector_type

    def get_type(self):
        return self.collector_type

    async def initialize(self):
        pass

    def is_available(self):
        return True

    async def collect(self, source):
        path = self.directory / f"{self.collector_type}_{source.id}.json"
        path.write_text(json.dumps(self.records))
        return CollectionResult(
            success=True,
            message="ok",
            data=[r.get("accountNumber", "") for r in self.records],
            source_id=source.id,
            metadata={"rawDataPath": str(path), "totalRecords": len(self.records)},
        )


def make_source(source_id="stm-2023", collector_type="st-marys-county-md"):
    return SourceConfig(
        id=source_id,
        type="county-website",
        region=Region(state="MD", county="St. Mary's"),
        collector_type=collector_type,
    )


@pytest.fixture
def pipeline():
    return TransformationPipeline(geocoder=Geocoder(provider=SimulatedGeocodingProvider()))


@pytest.fixture
def manager(tmp_path):
    manager = CollectorManager(rate_limit_delay=0)
    manager.register_collector(SnapshotCollector(tmp_path, RAW_RECORDS))
    return manager


class TestIngestionService:
    """Tests for IngestionService.run()"""

    @pytest.mark.asyncio
    async def test_run_stores_standardized_records(self, manager, pipeline):
        """Test collected records are standardized and upserted"""
        sink = InMemoryRecordSink()
        service = IngestionService(manager, pipeline, sink)

        reports = await service.run([make_source()])

        assert len(reports) == 1
        report = reports[0]
        assert report.success is True
        assert (report.collected, report.processed, report.failed, report.stored) == (2, 2, 0, 2)

        stored = sink.get("STM100001")
        assert stored.county == "St. Mary's"
        assert stored.property_address == "1000 Main ST, Leonardtown, MD 20650"
        assert stored.sale_info.sale_type == "Tax Lien"
        assert stored.has_coordinates()
        assert sink.get("STM100002").sale_info.sale_type == "Assessment"

    @pytest.mark.asyncio
    async def test_failed_collection_reported(self, manager, pipeline):
        """Test a collection failure produces a failed report and stores nothing"""
        sink = InMemoryRecordSink()
        service = IngestionService(manager, pipeline, sink)

        reports = await service.run([make_source("x", collector_type="missing"), make_source()])

        assert reports[0].success is False
        assert "missing" in reports[0].message
        assert reports[1].success is True
        assert len(sink) == 2

    @pytest.mark.asyncio
    async def test_transformation_failures_counted(self, manager, pipeline):
        """Test per-record pipeline failures are isolated"""
        def reject(record):
            if record.parcel_id == "STM100002":
                raise ValueError("rejected")
            return record

        pipeline.register_transformation_step(TransformationStep("Reject", reject))
        service = IngestionService(manager, pipeline)

        report = (await service.run([make_source()]))[0]

        assert report.processed == 1
        assert report.failed == 1
        assert report.errors[0].startswith("record 1:")
        assert len(service.sink) == 1

    @pytest.mark.asyncio
    async def test_pipeline_runs_in_worker_thread(self, manager, pipeline):
        """Test blocking transformation work stays off the event loop thread"""
        seen = []

        def record_thread(record):
            seen.append(threading.get_ident())
            return record

        pipeline.register_transformation_step(TransformationStep("Thread", record_thread))
        service = IngestionService(manager, pipeline)

        await service.run([make_source()])

        assert len(seen) == 2
        assert threading.get_ident() not in seen

    @pytest.mark.asyncio
    async def test_unreadable_snapshot(self, pipeline, tmp_path):
        """Test a corrupt snapshot fails the source"""
        service = IngestionService(CollectorManager(rate_limit_delay=0), pipeline)
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")

        report = await service.ingest_snapshot(make_source(), str(bad))

        assert report.success is False
        assert "raw snapshot" in report.message

    @pytest.mark.asyncio
    async def test_deduplication(self, tmp_path, pipeline):
        """Test records sharing a parcel id are merged before storing"""
        duplicated = RAW_RECORDS + [dict(RAW_RECORDS[0], ownerName="")]
        manager = CollectorManager(rate_limit_delay=0)
        manager.register_collector(SnapshotCollector(tmp_path, duplicated))
        service = IngestionService(manager, pipeline, deduplicator=PropertyDeduplicator())

        report = (await service.run([make_source()]))[0]

        assert report.processed == 3
        assert report.stored == 2
        assert service.sink.get("STM100001").owner_name == "DOE JOHN"


class TestInMemoryRecordSink:
    """Tests for InMemoryRecordSink"""

    def test_upsert_by_parcel_id(self):
        """Test the same parcel replaces the earlier record"""
        sink = InMemoryRecordSink()

        assert sink.upsert(StandardizedRecord(parcel_id="12-34", owner_name="A")) is True
        assert sink.upsert(StandardizedRecord(parcel_id="1234", owner_name="B")) is False

        assert len(sink) == 1
        assert sink.get("12-34").owner_name == "B"

    def test_records_without_parcel_id(self):
        """Test records without parcel ids are keyed by address"""
        sink = InMemoryRecordSink()
        sink.upsert(StandardizedRecord(property_address="1 Main ST"))
        sink.upsert(StandardizedRecord(property_address="2 Main ST"))

        assert len(sink.records()) == 2


class TestCli:
    """Tests for command-line helpers"""

    def test_load_sources(self, tmp_path):
        """Test camelCase source files are parsed"""
        path = tmp_path / "sources.json"
        path.write_text(json.dumps([{
            "id": "stm-2023",
            "name": "St. Mary's Tax Sale",
            "type": "county-website",
            "url": "https://example.com/taxsale",
            "region": {"state": "MD", "county": "St. Mary's"},
            "collectorType": "st-marys-county-md",
            "schedule": {"frequency": "weekly", "dayOfWeek": 1},
        }]))

        sources = load_sources(path)

        assert sources[0].collector_type == "st-marys-county-md"
        assert sources[0].schedule.day_of_week == 1

    def test_parse_args(self, tmp_path):
        """Test argument defaults"""
        args = parse_args(["--sources", str(tmp_path / "s.json"), "--limit", "5"])

        assert args.limit == 5
        assert args.deduplicate is False
        assert args.output.name == "records.json"
        assert args.log_level is None
