"""
Command-line ingestion.

Usage:
    python -m src.parcelflow.ingestion.cli --sources sources.json --output data/processed/records.json
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import List

from src.parcelflow.collectors.arcgis import ArcGISParcelCollector
from src.parcelflow.collectors.manager import CollectorManager
from src.parcelflow.collectors.st_marys_county import StMarysCountyCollector
from src.parcelflow.ingestion.service import IngestionService
from src.parcelflow.ingestion.sink import InMemoryRecordSink
from src.parcelflow.matching.deduplication import PropertyDeduplicator
from src.parcelflow.models.source import SourceConfig
from src.parcelflow.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def load_sources(path: Path) -> List[SourceConfig]:
    """Read a JSON list of source configurations (camelCase or snake_case keys)."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    return [SourceConfig.model_validate(item) for item in data]


def build_manager() -> CollectorManager:
    manager = CollectorManager()
    manager.register_collector(StMarysCountyCollector())
    manager.register_collector(ArcGISParcelCollector())
    return manager


async def run(sources: List[SourceConfig], output: Path | None, deduplicate: bool) -> int:
    manager = build_manager()
    await manager.initialize_all_collectors()

    sink = InMemoryRecordSink()
    service = IngestionService(
        manager,
        sink=sink,
        deduplicator=PropertyDeduplicator() if deduplicate else None,
    )
    reports = await service.run(sources)

    for report in reports:
        logger.info("source_report", **report.to_dict())

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", encoding="utf-8") as f:
            json.dump([record.to_dict() for record in sink.records()], f, indent=2)
        logger.info("records_written", path=str(output), records=len(sink))

    return 0 if all(report.success for report in reports) else 1


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collect and standardize property records")
    parser.add_argument("--sources", type=Path, required=True, help="JSON file with source configurations")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data/processed/records.json"),
        help="Where to write standardized records",
    )
    parser.add_argument("--limit", type=int, default=None, help="Optional record limit per source")
    parser.add_argument("--deduplicate", action="store_true", help="Merge records sharing a parcel id")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured log level",
    )
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    sources = load_sources(args.sources)
    if args.limit:
        sources = [
            source.model_copy(update={"metadata": {**source.metadata, "limit": args.limit}})
            for source in sources
        ]

    logger.info("ingestion_started", sources=[source.id for source in sources])
    return asyncio.run(run(sources, args.output, args.deduplicate))


if __name__ == "__main__":
    raise SystemExit(main())
