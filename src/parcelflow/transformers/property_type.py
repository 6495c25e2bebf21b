"""
Property Type Classification

Maps free-form zoning or land-use codes to a closed set of property types.
"""
from typing import Optional

RESIDENTIAL = "Residential"
COMMERCIAL = "Commercial"
INDUSTRIAL = "Industrial"
AGRICULTURAL = "Agricultural"
MIXED_USE = "Mixed Use"
OTHER = "Other"
UNKNOWN = "Unknown"

PROPERTY_TYPES = (RESIDENTIAL, COMMERCIAL, INDUSTRIAL, AGRICULTURAL, MIXED_USE, OTHER, UNKNOWN)

# Checked in order; first rule with a matching substring wins
ZONING_RULES = (
    (("res", "r-"), RESIDENTIAL),
    (("com", "c-"), COMMERCIAL),
    (("ind", "i-"), INDUSTRIAL),
    (("agr", "a-"), AGRICULTURAL),
    (("mix",), MIXED_USE),
)


def determine_property_type(zoning_or_use: Optional[str]) -> str:
    """
    Classify a zoning or use code.

    Args:
        zoning_or_use: Raw zoning/use code (e.g. 'R-1', 'Commercial', 'AGR')

    Returns:
        One of PROPERTY_TYPES; 'Unknown' when no code is given
    """
    if not zoning_or_use:
        return UNKNOWN

    code = str(zoning_or_use).lower()

    for needles, property_type in ZONING_RULES:
        if any(needle in code for needle in needles):
            return property_type

    return OTHER
