"""
Unit tests for TransformationPipeline
"""
import pytest
from unittest.mock import Mock

from src.parcelflow.exceptions import TransformationError
from src.parcelflow.geocoding.geocoder import Geocoder
from src.parcelflow.geocoding.providers import SimulatedGeocodingProvider
from src.parcelflow.models.geocoding import GeocodingResult
from src.parcelflow.models.property import StandardizedRecord, ValidationResult
from src.parcelflow.pipelines.transformation import (
    TransformationPipeline,
    TransformationStep,
    is_standardized,
)
from src.parcelflow.pipelines.validation import ValidationRule

ST_MARYS = "st-marys-county-md"


@pytest.fixture
def pipeline():
    """Pipeline with a deterministic geocoder"""
    return TransformationPipeline(geocoder=Geocoder(provider=SimulatedGeocodingProvider()))


@pytest.fixture
def st_marys_raw():
    """Sample St. Mary's County record"""
    return {
        "accountNumber": "STM100001",
        "propertyLocation": "1000 Main Street, Leonardtown, MD 20650",
        "totalValue": 250055,
        "taxYear": 2023,
        "source": {"id": "stm-2023", "name": "St. Mary's Tax Sale", "type": "county-website"},
    }


class TestPipelineRegistration:
    """Tests for step and rule registration"""

    def test_default_steps_in_order(self, pipeline):
        """Test default steps are registered in processing order"""
        assert pipeline.transformation_steps == ("Address Normalization", "Geocoding", "Enrichment")

    def test_default_rules(self, pipeline):
        """Test default validation rules are registered"""
        assert pipeline.validation_rules == ("Required Fields", "Identity Fields", "ZIP Code Format")

    def test_without_defaults(self):
        """Test an empty pipeline only standardizes"""
        pipeline = TransformationPipeline(geocoder=Mock(), register_defaults=False)

        record = pipeline.process({"parcelId": "1", "address": "12 Main Street"})

        assert pipeline.transformation_steps == ()
        assert record.property_address == "12 Main Street"
        assert record.metadata.validation_results == []
        pipeline.geocoder.geocode.assert_not_called()

    def test_custom_step_runs_after_defaults(self, pipeline, st_marys_raw):
        """Test registered steps run in registration order"""
        seen = []

        def capture(record):
            seen.append(record.property_address)
            return record

        pipeline.register_transformation_step(TransformationStep("Capture", capture))

        pipeline.process(st_marys_raw, ST_MARYS)

        assert seen == ["1000 Main ST, Leonardtown, MD 20650"]

    def test_custom_validation_rule(self, pipeline, st_marys_raw):
        """Test a registered rule contributes a validation result"""
        pipeline.register_validation_rule(ValidationRule(
            "Has Owner",
            lambda record: ValidationResult(rule="Has Owner", valid=bool(record.owner_name)),
        ))

        record = pipeline.process(st_marys_raw, ST_MARYS)

        assert record.metadata.validation_results[-1].rule == "Has Owner"
        assert record.metadata.validation_results[-1].valid is False
        assert not record.is_valid()

    def test_replace_source_standardization(self, pipeline):
        """Test a later registration replaces the mapping for a source type"""
        pipeline.register_source_standardization(
            "custom",
            lambda raw, base: base.model_copy(update={"parcel_id": raw["id"], "state": "VA"}),
        )
        pipeline.register_source_standardization(
            "custom",
            lambda raw, base: base.model_copy(update={"parcel_id": raw["id"], "state": "DE"}),
        )

        record = pipeline.process({"id": "P-1"}, "custom")

        assert record.parcel_id == "P-1"
        assert record.state == "DE"


class TestPipelineProcess:
    """Tests for process()"""

    def test_st_marys_record(self, pipeline, st_marys_raw):
        """Test a St. Mary's record is standardized, normalized, geocoded and validated"""
        record = pipeline.process(st_marys_raw, ST_MARYS)

        assert record.parcel_id == "STM100001"
        assert record.property_address == "1000 Main ST, Leonardtown, MD 20650"
        assert record.county == "St. Mary's"
        assert record.sale_info.sale_type == "Assessment"
        assert record.has_coordinates()
        assert record.location.coordinates == (record.location.longitude, record.location.latitude)
        assert record.location.confidence == 0.8
        assert record.metadata.source_id == "stm-2023"
        assert record.metadata.raw_data["accountNumber"] == "STM100001"
        assert record.is_valid()

    def test_standardize_scenario(self, pipeline):
        """Test initial standardization of a St. Mary's valuation record"""
        raw = {
            "accountNumber": "STM100001",
            "propertyLocation": "1000 Main Street, Leonardtown, MD 20650",
            "totalValue": 250055,
            "taxYear": 2023,
        }

        record = pipeline.standardize(raw, ST_MARYS)

        assert record.to_dict()["parcelId"] == "STM100001"
        assert record.property_address == "1000 Main Street, Leonardtown, MD 20650"
        assert (record.state, record.county, record.city, record.zip_code) == \
            ("MD", "St. Mary's", "Leonardtown", "20650")
        assert record.sale_info.sale_amount == 250055
        assert record.sale_info.sale_type == "Assessment"
        assert record.metadata.source_id == "unknown"

    def test_missing_fields_are_soft_failures(self, pipeline):
        """Test an empty record is processed and its problems recorded"""
        record = pipeline.process({})

        assert record.parcel_id == ""
        assert record.property_address == ""
        assert record.location is None
        results = {result.rule: result for result in record.metadata.validation_results}
        assert results["Required Fields"].valid is False
        assert "parcel_id" in results["Required Fields"].message
        assert results["Identity Fields"].valid is False
        assert results["ZIP Code Format"].valid is True

    def test_reprocessing_is_idempotent(self, pipeline, st_marys_raw):
        """Test processing a record's own output keeps identity fields"""
        first = pipeline.process(st_marys_raw, ST_MARYS)
        second = pipeline.process(first)
        third = pipeline.process(first.to_dict(), ST_MARYS)

        for again in (second, third):
            assert again.parcel_id == first.parcel_id
            assert again.property_address == first.property_address
            assert again.county == first.county
            assert again.metadata.source_id == first.metadata.source_id

    def test_geocoder_exception_leaves_record_unlocated(self, st_marys_raw):
        """Test geocoding failure is best-effort"""
        geocoder = Mock()
        geocoder.geocode.side_effect = RuntimeError("provider down")
        pipeline = TransformationPipeline(geocoder=geocoder)

        record = pipeline.process(st_marys_raw, ST_MARYS)

        assert record.location is None
        assert record.parcel_id == "STM100001"

    def test_geocoder_no_match(self, st_marys_raw):
        """Test a None geocoding result leaves the record unlocated"""
        geocoder = Mock()
        geocoder.geocode.return_value = None
        pipeline = TransformationPipeline(geocoder=geocoder)

        record = pipeline.process(st_marys_raw, ST_MARYS)

        assert record.location is None
        geocoder.geocode.assert_called_once_with("1000 Main ST, Leonardtown, MD 20650")

    def test_geocoding_address_composed_from_parts(self):
        """Test street-only addresses are completed with city, state and zip"""
        geocoder = Mock()
        geocoder.geocode.return_value = None
        pipeline = TransformationPipeline(geocoder=geocoder)

        pipeline.process({
            "parcelId": "9",
            "address": "9 Elm Street",
            "city": "Leonardtown",
            "state": "MD",
            "zip": "20650",
        })

        geocoder.geocode.assert_called_once_with("9 Elm ST, Leonardtown, MD 20650")

    def test_geocoded_location_fields(self, st_marys_raw):
        """Test provider result is copied into the location"""
        geocoder = Mock()
        geocoder.geocode.return_value = GeocodingResult(
            latitude=38.29, longitude=-76.63, formatted_address="Leonardtown, MD", confidence=0.9
        )
        pipeline = TransformationPipeline(geocoder=geocoder)

        record = pipeline.process(st_marys_raw, ST_MARYS)

        assert record.location.latitude == 38.29
        assert record.location.coordinates == (-76.63, 38.29)
        assert record.location.formatted_address == "Leonardtown, MD"

    def test_source_coordinates_survive_geocoding(self):
        """Test coordinates supplied by the source are not replaced by a lookup"""
        geocoder = Mock()
        pipeline = TransformationPipeline(geocoder=geocoder)

        record = pipeline.process({
            "parcelId": "X1",
            "address": "100 Orange Ave",
            "city": "Orlando",
            "state": "FL",
            "latitude": 28.54,
            "longitude": -81.38,
        }, "arcgis-feature-service")

        assert record.location.latitude == 28.54
        assert record.location.longitude == -81.38
        geocoder.geocode.assert_not_called()

    @pytest.mark.parametrize("missing", ["NaN", "Infinity", float("nan")])
    def test_non_finite_numbers_treated_as_missing(self, pipeline, missing):
        """Test NaN/Infinity cells do not fail the record"""
        record = pipeline.process({
            "parcelNumber": "P-1",
            "address": "1 Main Street",
            "state": "MD",
            "yearBuilt": missing,
            "bedrooms": missing,
            "taxYear": missing,
        })

        assert record.parcel_id == "P-1"
        assert record.property_details.year_built is None
        assert record.property_details.bedrooms is None

    def test_step_exception_becomes_transformation_error(self, pipeline, st_marys_raw):
        """Test any stage failure surfaces as one TransformationError"""
        def explode(record):
            raise ValueError("bad data")

        pipeline.register_transformation_step(TransformationStep("Explode", explode))

        with pytest.raises(TransformationError) as exc_info:
            pipeline.process(st_marys_raw, ST_MARYS)

        assert exc_info.value.stage == "Explode"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_step_returning_wrong_type(self, pipeline, st_marys_raw):
        """Test a step must return a StandardizedRecord"""
        pipeline.register_transformation_step(TransformationStep("Broken", lambda record: None))

        with pytest.raises(TransformationError):
            pipeline.process(st_marys_raw, ST_MARYS)

    def test_standardization_failure(self, pipeline):
        """Test a failing source mapping is reported at the standardization stage"""
        pipeline.register_source_standardization("broken", lambda raw, base: raw["missing"])

        with pytest.raises(TransformationError) as exc_info:
            pipeline.process({"a": 1}, "broken")

        assert exc_info.value.stage == "Initial Standardization"


class TestProcessBatch:
    """Tests for process_batch()"""

    def test_failures_isolated_per_record(self, pipeline):
        """Test one bad record does not stop the batch"""
        def reject_bad(record):
            if record.parcel_id == "BAD":
                raise ValueError("rejected")
            return record

        pipeline.register_transformation_step(TransformationStep("Reject", reject_bad))

        result = pipeline.process_batch([
            {"parcelId": "1", "address": "1 Main Street"},
            {"parcelId": "BAD"},
            {"parcelId": "3"},
        ])

        assert [record.parcel_id for record in result.records] == ["1", "3"]
        assert len(result.failures) == 1
        assert result.failures[0][0] == 1
        assert isinstance(result.failures[0][1], TransformationError)


class TestIsStandardized:
    """Tests for canonical shape detection"""

    def test_detection(self):
        """Test camelCase, snake_case and model inputs"""
        camel = {"parcelId": "1", "propertyAddress": "", "city": "", "state": "", "county": ""}
        snake = {"parcel_id": "1", "property_address": "", "city": "", "state": "", "county": ""}

        assert is_standardized(camel)
        assert is_standardized(snake)
        assert is_standardized(StandardizedRecord())
        assert not is_standardized({"parcelId": "1"})
        assert not is_standardized(None)
