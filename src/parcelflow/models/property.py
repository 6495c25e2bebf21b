"""
Standardized Property Models

Canonical schema every source is mapped into by the transformation pipeline.
Field names are snake_case in Python and camelCase when serialized for the
persistence store.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.parcelflow.models.collection import utc_now

RawRecord = Dict[str, Any]

CANONICAL_IDENTITY_FIELDS = ("parcelId", "propertyAddress", "city", "state", "county")


class _CanonicalModel(BaseModel):
    """Shared configuration for the canonical schema."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        validate_assignment=True,
    )


class TaxInfo(_CanonicalModel):
    """Tax assessment and billing details."""

    tax_amount: Optional[float] = None
    tax_year: Optional[int] = None
    tax_status: Optional[str] = None
    tax_account_number: Optional[str] = None
    assessed_value: Optional[float] = None
    land_value: Optional[float] = None
    improvement_value: Optional[float] = None
    tax_due: Optional[float] = None


class SaleInfo(_CanonicalModel):
    """Sale or valuation event attached to the parcel."""

    sale_amount: Optional[float] = None
    sale_date: Optional[datetime] = None
    sale_type: Optional[str] = None
    sale_status: Optional[str] = None


class PropertyDetails(_CanonicalModel):
    """Physical characteristics of the parcel."""

    land_area: Optional[float] = None
    land_area_unit: Optional[str] = None
    building_area: Optional[float] = None
    year_built: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    zoning: Optional[str] = None


class Location(_CanonicalModel):
    """
    Geocoded location.

    Attributes:
        coordinates: (longitude, latitude) pair
        formatted_address: Address string the provider resolved
    """

    coordinates: Optional[Tuple[float, float]] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    formatted_address: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0, le=1)


class ValidationResult(_CanonicalModel):
    """Outcome of one validation rule."""

    rule: str
    valid: bool
    message: Optional[str] = None


class RecordMetadata(_CanonicalModel):
    """Provenance and processing details."""

    source_id: str = "unknown"
    raw_data: Any = None
    last_updated: datetime = Field(default_factory=utc_now)
    validation_results: List[ValidationResult] = Field(default_factory=list)
    processing_notes: List[str] = Field(default_factory=list)


class StandardizedRecord(_CanonicalModel):
    """
    Canonical property record.

    parcel_id, state and county are expected to be non-empty, but the pipeline
    only reports violations in metadata.validation_results; it never rejects.
    """

    parcel_id: str = ""
    property_address: str = ""
    city: str = ""
    state: str = ""
    county: str = ""
    zip_code: str = ""
    owner_name: Optional[str] = None
    property_type: Optional[str] = None
    tax_info: Optional[TaxInfo] = None
    sale_info: Optional[SaleInfo] = None
    property_details: Optional[PropertyDetails] = None
    location: Optional[Location] = None
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)

    def has_coordinates(self) -> bool:
        """Check if the record has been geocoded."""
        return (
            self.location is not None
            and self.location.latitude is not None
            and self.location.longitude is not None
        )

    def is_valid(self) -> bool:
        """True when every recorded validation rule passed."""
        return all(result.valid for result in self.metadata.validation_results)

    def to_dict(self) -> Dict[str, Any]:
        """Serialized form handed to the persistence store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
