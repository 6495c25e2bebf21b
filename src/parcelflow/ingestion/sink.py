"""
Record Sinks

Destinations for standardized records. Persistence is owned by the caller;
anything with an upsert(record) method can be handed to IngestionService.
"""
from __future__ import annotations

from typing import Dict, List, Protocol

from src.parcelflow.models.property import StandardizedRecord
from src.parcelflow.transformers.address import normalize_parcel_id
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)


class RecordSink(Protocol):
    def upsert(self, record: StandardizedRecord) -> bool:
        """Store a record, replacing any previous version. Returns True if it was new."""
        ...


class InMemoryRecordSink:
    """
    Dict-backed sink keyed by normalized parcel id.

    Records without a parcel id are keyed by their address instead.
    """

    def __init__(self):
        self._records: Dict[str, StandardizedRecord] = {}

    @staticmethod
    def key_for(record: StandardizedRecord) -> str:
        parcel = normalize_parcel_id(record.parcel_id)
        if parcel:
            return parcel
        return f"address:{record.property_address.casefold()}"

    def upsert(self, record: StandardizedRecord) -> bool:
        key = self.key_for(record)
        inserted = key not in self._records
        self._records[key] = record
        if not inserted:
            logger.debug("record_replaced", key=key)
        return inserted

    def get(self, parcel_id: str) -> StandardizedRecord | None:
        return self._records.get(normalize_parcel_id(parcel_id))

    def records(self) -> List[StandardizedRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)
