"""
Address Normalization

Abbreviation tables and helpers for normalizing property addresses across
data sources.
"""
import re
from typing import Dict, Optional


# Street type abbreviations
STREET_TYPES: Dict[str, str] = {
    'ALLEY': 'ALY', 'AVENUE': 'AVE', 'BOULEVARD': 'BLVD', 'CIRCLE': 'CIR',
    'COURT': 'CT', 'DRIVE': 'DR', 'EXPRESSWAY': 'EXPY', 'HIGHWAY': 'HWY',
    'LANE': 'LN', 'PARKWAY': 'PKWY', 'PLACE': 'PL', 'ROAD': 'RD',
    'STREET': 'ST', 'TERRACE': 'TER', 'TRAIL': 'TRL', 'PLAZA': 'PLZ',
    'SQUARE': 'SQ',
}

# Directional abbreviations
DIRECTIONS: Dict[str, str] = {
    'NORTH': 'N', 'SOUTH': 'S', 'EAST': 'E', 'WEST': 'W',
    'NORTHEAST': 'NE', 'NORTHWEST': 'NW', 'SOUTHEAST': 'SE', 'SOUTHWEST': 'SW',
}

# Unit designator abbreviations
UNIT_TYPES: Dict[str, str] = {
    'APARTMENT': 'APT', 'BUILDING': 'BLDG', 'FLOOR': 'FL',
    'SUITE': 'STE', 'ROOM': 'RM',
}

ADDRESS_ABBREVIATIONS: Dict[str, str] = {**STREET_TYPES, **DIRECTIONS, **UNIT_TYPES}

_ABBREVIATION_PATTERN = re.compile(
    r'\b(' + '|'.join(sorted(ADDRESS_ABBREVIATIONS, key=len, reverse=True)) + r')\b',
    re.IGNORECASE,
)

_CITY_STATE_ZIP = re.compile(
    r',\s*(?P<city>[^,]+?)\s*,\s*(?P<state>[A-Za-z]{2})\s+(?P<zip>\d{5})(?:-\d{4})?\s*$'
)


def normalize_address(address: Optional[str]) -> str:
    """
    Replace full street words with their standard abbreviations.

    Only whole words are replaced; the rest of the address keeps its original
    casing and punctuation. Abbreviations are never themselves table keys, so
    normalizing an already normalized address changes nothing.

    Args:
        address: Street address line

    Returns:
        Normalized address ('' for empty input)
    """
    if not address:
        return ''

    return _ABBREVIATION_PATTERN.sub(
        lambda match: ADDRESS_ABBREVIATIONS[match.group(1).upper()],
        address.strip(),
    )


def split_city_zip(address: Optional[str]) -> tuple[str, str]:
    """
    Extract city and ZIP from a one-line address such as
    '1000 Main Street, Leonardtown, MD 20650'.

    Returns:
        Tuple of (city, zip_code); empty strings when the address has no
        trailing 'City, ST 12345' section
    """
    if not address:
        return '', ''

    match = _CITY_STATE_ZIP.search(address)
    if not match:
        return '', ''

    return match.group('city').strip(), match.group('zip')


def normalize_zip(zip_code) -> Optional[str]:
    """
    Normalize ZIP code to 5 digits.

    Args:
        zip_code: Raw ZIP code

    Returns:
        5-digit ZIP code or None
    """
    if zip_code is None or zip_code == '':
        return None

    digits = re.sub(r'\D', '', str(zip_code))

    if len(digits) >= 5:
        return digits[:5]

    return None


def normalize_parcel_id(parcel_id) -> Optional[str]:
    """
    Normalize parcel ID by removing formatting characters.

    Letters are kept (St. Mary's account numbers look like 'STM100001');
    dashes, dots, and whitespace are dropped and the result is upper-cased.

    Args:
        parcel_id: Raw parcel ID

    Returns:
        Normalized parcel ID
    """
    if not parcel_id:
        return None

    normalized = re.sub(r'[^A-Za-z0-9]', '', str(parcel_id)).upper()

    return normalized if normalized else None


def compose_geocoding_address(
    street: str,
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = None,
) -> str:
    """
    Build the single-line address sent to the geocoder: 'street, city, state zip'.
    """
    address = street or ''
    if city:
        address += f", {city}"
    if state:
        address += f", {state}"
    if zip_code:
        address += f" {zip_code}"
    return address
