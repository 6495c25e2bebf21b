"""
Record Deduplication

Links standardized records from different sources that describe the same
parcel and merges them into one record.
"""
from collections import defaultdict
from typing import Dict, List, Optional

from src.parcelflow.matching.fuzzy import FuzzyMatcher
from src.parcelflow.models.property import Location, StandardizedRecord
from src.parcelflow.transformers.address import compose_geocoding_address, normalize_parcel_id
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)

_MERGEABLE_FIELDS = (
    "parcel_id", "property_address", "city", "state", "county", "zip_code",
    "owner_name", "property_type", "tax_info", "sale_info", "property_details",
)


class PropertyDeduplicator:
    """
    Deduplicates and merges standardized records.

    Records are grouped either by normalized parcel ID, or, when parcel ID
    systems differ between sources, by fuzzy similarity of their full address.
    """

    def __init__(self, matcher: Optional[FuzzyMatcher] = None):
        """
        Initialize deduplicator.

        Args:
            matcher: Matcher deciding whether two addresses are the same
        """
        self.matcher = matcher or FuzzyMatcher()
        logger.info("property_deduplicator_initialized", threshold=self.matcher.threshold)

    @staticmethod
    def address_key(record: StandardizedRecord) -> str:
        """Single-line address used for fuzzy comparison."""
        return compose_geocoding_address(
            record.property_address, record.city, record.state, record.zip_code
        )

    def group(self, records: List[StandardizedRecord], by_address: bool = False) -> List[List[StandardizedRecord]]:
        """
        Partition records into groups describing the same parcel.

        Records without a parcel ID (or address, when grouping by address)
        form groups of their own. Group order follows first appearance.
        """
        if not by_address:
            index: Dict[str, List[StandardizedRecord]] = defaultdict(list)
            groups: List[List[StandardizedRecord]] = []
            for record in records:
                key = normalize_parcel_id(record.parcel_id)
                if not key:
                    groups.append([record])
                    continue
                if key not in index:
                    groups.append(index[key])
                index[key].append(record)
            return groups

        representatives: List[str] = []
        address_groups: List[List[StandardizedRecord]] = []
        unaddressed: List[List[StandardizedRecord]] = []

        for record in records:
            if not record.property_address:
                unaddressed.append([record])
                continue

            address = self.address_key(record)
            for idx, representative in enumerate(representatives):
                if self.matcher.is_match(address, representative):
                    address_groups[idx].append(record)
                    break
            else:
                representatives.append(address)
                address_groups.append([record])

        return address_groups + unaddressed

    def find_duplicates(
        self,
        records: List[StandardizedRecord],
        by_address: bool = False,
    ) -> List[List[StandardizedRecord]]:
        """
        Groups containing more than one record.

        Args:
            records: Standardized records
            by_address: Group by fuzzy address instead of parcel ID

        Returns:
            List of duplicate groups
        """
        duplicates = [group for group in self.group(records, by_address) if len(group) > 1]

        logger.info(
            "duplicates_found",
            total_records=len(records),
            duplicate_groups=len(duplicates),
            by_address=by_address
        )

        return duplicates

    def merge(self, records: List[StandardizedRecord]) -> StandardizedRecord:
        """
        Merge records describing one parcel.

        The first record wins for every populated field; empty fields are
        filled from later records. The location with the highest geocoding
        confidence is kept.
        """
        if not records:
            raise ValueError("cannot merge an empty group")

        merged = records[0].model_copy(deep=True)
        if len(records) == 1:
            return merged

        update = {}
        for field in _MERGEABLE_FIELDS:
            if getattr(merged, field):
                continue
            for other in records[1:]:
                value = getattr(other, field)
                if value:
                    update[field] = value
                    break

        location = self.resolve_location(records)
        if location is not None:
            update["location"] = location

        source_ids = sorted({record.metadata.source_id for record in records})
        notes = list(merged.metadata.processing_notes)
        notes.append(f"Merged {len(records)} records from sources: {', '.join(source_ids)}")
        update["metadata"] = merged.metadata.model_copy(update={"processing_notes": notes})

        return merged.model_copy(update=update)

    @staticmethod
    def resolve_location(records: List[StandardizedRecord]) -> Optional[Location]:
        """Most confident location among the records, or None."""
        located = [record.location for record in records if record.has_coordinates()]
        if not located:
            return None
        return max(located, key=lambda location: location.confidence or 0.0)

    def deduplicate(
        self,
        records: List[StandardizedRecord],
        by_address: bool = False,
    ) -> List[StandardizedRecord]:
        """
        Collapse duplicate groups into single merged records.

        Returns:
            One record per group, in order of first appearance
        """
        result = [self.merge(group) for group in self.group(records, by_address)]

        logger.info(
            "deduplication_complete",
            input_records=len(records),
            unique_records=len(result),
            merged=len(records) - len(result),
        )

        return result
