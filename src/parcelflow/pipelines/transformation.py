"""
Transformation Pipeline

Converts raw property records from any source into StandardizedRecord
instances.

Processing order:
    1. Initial standardization (skipped for records already in canonical shape)
    2. Registered transformation steps, in registration order. The defaults are
       Address Normalization, Geocoding and Enrichment.
    3. Validation rules, whose findings are attached to metadata.validation_results

Any exception raised along the way surfaces as a single TransformationError.
Geocoding is best-effort: a failed lookup leaves the record without a location.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from src.parcelflow.exceptions import TransformationError
from src.parcelflow.geocoding.geocoder import Geocoder
from src.parcelflow.models.collection import utc_now
from src.parcelflow.models.property import (
    CANONICAL_IDENTITY_FIELDS,
    Location,
    RawRecord,
    RecordMetadata,
    StandardizedRecord,
)
from src.parcelflow.pipelines.validation import ValidationRule, default_validation_rules
from src.parcelflow.transformers.address import compose_geocoding_address, normalize_address, split_city_zip
from src.parcelflow.transformers.standardizers import (
    ST_MARYS_SOURCE_TYPE,
    StandardizeFn,
    source_id_of,
    standardize_generic,
    standardize_st_marys_county,
)
from src.parcelflow.utils.logger import get_logger, record_context

logger = get_logger(__name__)

_SNAKE_IDENTITY_FIELDS = ("parcel_id", "property_address", "city", "state", "county")


@dataclass(frozen=True)
class TransformationStep:
    """Named record -> record transform registrable into the pipeline."""

    name: str
    transform: Callable[[StandardizedRecord], StandardizedRecord]


@dataclass
class BatchResult:
    """
    Outcome of process_batch().

    Attributes:
        records: Successfully standardized records, in input order
        failures: (input index, error) for each record that failed
    """

    records: List[StandardizedRecord] = field(default_factory=list)
    failures: List[Tuple[int, TransformationError]] = field(default_factory=list)


def is_standardized(data: Any) -> bool:
    """True when the data already has the canonical identity fields."""
    if isinstance(data, StandardizedRecord):
        return True
    if not isinstance(data, Mapping):
        return False
    return (
        all(name in data for name in CANONICAL_IDENTITY_FIELDS)
        or all(name in data for name in _SNAKE_IDENTITY_FIELDS)
    )


class TransformationPipeline:
    """
    Standardizes, normalizes, geocodes, enriches and validates property records.

    Source-specific mappings are looked up by source type; records from
    unregistered source types go through the generic alias-table mapping.
    """

    def __init__(self, geocoder: Optional[Geocoder] = None, register_defaults: bool = True):
        """
        Initialize the pipeline.

        Args:
            geocoder: Geocoder used by the geocoding step (default: new Geocoder)
            register_defaults: Register the default steps, rules and the
                St. Mary's County mapping
        """
        self.geocoder = geocoder or Geocoder()
        self._steps: List[TransformationStep] = []
        self._rules: List[ValidationRule] = []
        self._source_map: Dict[str, StandardizeFn] = {}

        if register_defaults:
            self.register_transformation_step(TransformationStep("Address Normalization", self.normalize_address))
            self.register_transformation_step(TransformationStep("Geocoding", self.geocode_property))
            self.register_transformation_step(TransformationStep("Enrichment", self.enrich_data))

            for rule in default_validation_rules():
                self.register_validation_rule(rule)

            self.register_source_standardization(ST_MARYS_SOURCE_TYPE, standardize_st_marys_county)

    def register_transformation_step(self, step: TransformationStep) -> None:
        """Append a step; steps run in registration order."""
        self._steps.append(step)
        logger.info("transformation_step_registered", step=step.name, position=len(self._steps))

    def register_validation_rule(self, rule: ValidationRule) -> None:
        """Append a validation rule."""
        self._rules.append(rule)
        logger.info("validation_rule_registered", rule=rule.name)

    def register_source_standardization(self, source_type: str, standardize_fn: StandardizeFn) -> None:
        """Register (or replace) the mapping used for a source type."""
        if source_type in self._source_map:
            logger.warning("source_standardization_replaced", source_type=source_type)
        self._source_map[source_type] = standardize_fn
        logger.info("source_standardization_registered", source_type=source_type)

    @property
    def transformation_steps(self) -> Tuple[str, ...]:
        return tuple(step.name for step in self._steps)

    @property
    def validation_rules(self) -> Tuple[str, ...]:
        return tuple(rule.name for rule in self._rules)

    def process(
        self,
        raw: Union[RawRecord, StandardizedRecord],
        source_type: Optional[str] = None,
    ) -> StandardizedRecord:
        """
        Run a record through the full pipeline.

        Args:
            raw: Raw record, or a previously standardized record
            source_type: Source type selecting a registered mapping

        Returns:
            Standardized record

        Raises:
            TransformationError: If any stage raises
        """
        stage = "Initial Standardization"
        try:
            record = self.standardize(raw, source_type)

            with record_context(record.parcel_id, record.metadata.source_id):
                for step in self._steps:
                    stage = step.name
                    record = step.transform(record)
                    if not isinstance(record, StandardizedRecord):
                        raise TypeError(f"step returned {type(record).__name__}, expected StandardizedRecord")

                stage = "Validation"
                return self.validate(record)

        except Exception as e:
            logger.error(
                "transformation_failed",
                stage=stage,
                source_type=source_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransformationError(f"Transformation failed at {stage}: {e}", stage=stage) from e

    def process_batch(
        self,
        raws: Iterable[Union[RawRecord, StandardizedRecord]],
        source_type: Optional[str] = None,
    ) -> BatchResult:
        """
        Process many records, isolating failures per record.

        Returns:
            BatchResult with the processed records and per-index failures
        """
        result = BatchResult()

        for idx, raw in enumerate(raws):
            try:
                result.records.append(self.process(raw, source_type))
            except TransformationError as e:
                result.failures.append((idx, e))

        if result.failures:
            logger.warning(
                "batch_transformation_errors",
                total_errors=len(result.failures),
                success_count=len(result.records),
            )

        return result

    def standardize(
        self,
        raw: Union[RawRecord, StandardizedRecord],
        source_type: Optional[str] = None,
    ) -> StandardizedRecord:
        """
        Map a raw record into the canonical shape.

        Records that already have the canonical identity fields are returned
        as-is (copied), which keeps re-processing stable on parcel, address
        and county.
        """
        if isinstance(raw, StandardizedRecord):
            return raw.model_copy(deep=True)

        if is_standardized(raw):
            data = dict(raw)
            if not data.get("metadata"):
                data["metadata"] = RecordMetadata(source_id=source_id_of(raw), raw_data=dict(raw))
            return StandardizedRecord.model_validate(data)

        base = StandardizedRecord(
            metadata=RecordMetadata(
                source_id=source_id_of(raw),
                raw_data=dict(raw),
                last_updated=utc_now(),
            )
        )

        standardize_fn = self._source_map.get(source_type) if source_type else None
        record = (standardize_fn or standardize_generic)(raw, base)

        if record.metadata.raw_data is None:
            record = record.model_copy(update={"metadata": base.metadata})

        return record

    def normalize_address(self, record: StandardizedRecord) -> StandardizedRecord:
        """Abbreviate street types, directionals and unit designators."""
        if not record.property_address:
            return record

        return record.model_copy(update={"property_address": normalize_address(record.property_address)})

    def geocode_property(self, record: StandardizedRecord) -> StandardizedRecord:
        """
        Attach coordinates; on any failure the record is returned unchanged.

        Records whose source already supplied coordinates are left as-is.
        """
        if not record.property_address or record.has_coordinates():
            return record

        # One-line addresses already carry 'City, ST 12345'
        city, _ = split_city_zip(record.property_address)
        if city:
            address = record.property_address
        else:
            address = compose_geocoding_address(
                record.property_address, record.city, record.state, record.zip_code
            )

        try:
            result = self.geocoder.geocode(address)
        except Exception as e:
            logger.warning("geocoding_step_failed", address=address[:80], error=str(e))
            return record

        if result is None:
            return record

        location = Location(
            coordinates=(result.longitude, result.latitude),
            latitude=result.latitude,
            longitude=result.longitude,
            formatted_address=result.formatted_address,
            confidence=result.confidence,
        )
        return record.model_copy(update={"location": location})

    def enrich_data(self, record: StandardizedRecord) -> StandardizedRecord:
        """Refresh the processing timestamp."""
        metadata = record.metadata.model_copy(update={"last_updated": utc_now()})
        return record.model_copy(update={"metadata": metadata})

    def validate(self, record: StandardizedRecord) -> StandardizedRecord:
        """
        Run every validation rule and attach the findings.

        Failed rules are logged as warnings; the record is never rejected.
        """
        results = []
        for rule in self._rules:
            finding = rule.validate(record)
            results.append(finding)
            if not finding.valid:
                logger.warning(
                    "validation_warning",
                    rule=finding.rule,
                    message=finding.message,
                    parcel_id=record.parcel_id,
                )

        metadata = record.metadata.model_copy(update={"validation_results": results})
        return record.model_copy(update={"metadata": metadata})
