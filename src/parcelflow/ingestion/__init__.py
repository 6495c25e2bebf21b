"""
Ingestion Package

Wires collection, transformation and storage together.
"""

from src.parcelflow.ingestion.service import IngestionService, SourceReport
from src.parcelflow.ingestion.sink import InMemoryRecordSink, RecordSink

__all__ = ["IngestionService", "InMemoryRecordSink", "RecordSink", "SourceReport"]
