"""
Transformers Package

Field-level transforms shared by the transformation pipeline: address
normalization, property-type classification, and source standardizers.
"""
from src.parcelflow.transformers.address import normalize_address, normalize_parcel_id
from src.parcelflow.transformers.property_type import determine_property_type
from src.parcelflow.transformers.standardizers import (
    FIELD_ALIASES,
    standardize_generic,
    standardize_st_marys_county,
)

__all__ = [
    "normalize_address",
    "normalize_parcel_id",
    "determine_property_type",
    "FIELD_ALIASES",
    "standardize_generic",
    "standardize_st_marys_county",
]
