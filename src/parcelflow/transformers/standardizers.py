"""
Source Standardizers

Map heterogeneous raw records into the canonical StandardizedRecord shape.

Generic standardization is driven by FIELD_ALIASES, an ordered table of
candidate raw keys per canonical field. Supporting a new source schema usually
means adding aliases to the table rather than writing a new mapping function.
Source-specific mappings (like St. Mary's County) take the same
(raw, base) -> StandardizedRecord signature and are registered on the pipeline.
"""
import math
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from src.parcelflow.models.property import (
    Location,
    PropertyDetails,
    RawRecord,
    SaleInfo,
    StandardizedRecord,
    TaxInfo,
)
from src.parcelflow.transformers.address import normalize_zip, split_city_zip
from src.parcelflow.transformers.property_type import determine_property_type

StandardizeFn = Callable[[RawRecord, StandardizedRecord], StandardizedRecord]

ST_MARYS_SOURCE_TYPE = "st-marys-county-md"

# Canonical field -> raw keys probed in priority order. Keys are compared
# case-insensitively with punctuation ignored, so 'SITUS_ZIP' matches 'situsZip'.
FIELD_ALIASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("parcel_id", ("parcelId", "parcelNumber", "accountNumber", "apn", "pin", "parcel")),
    ("property_address", ("propertyAddress", "address", "situs", "location", "situsAddress")),
    ("city", ("city", "municipality", "situsCity")),
    ("state", ("state", "stateCode")),
    ("county", ("county", "countyName")),
    ("zip_code", ("zipCode", "zip", "postalCode", "situsZip")),
    ("owner_name", ("ownerName", "owner", "name1")),
    ("property_type", ("propertyType", "type")),
    ("zoning", ("zoning", "use", "zoningCode", "landUse")),
    ("sale_amount", ("saleAmount", "price", "value")),
    ("sale_date", ("saleDate",)),
    ("sale_type", ("saleType",)),
    ("tax_amount", ("taxAmount", "taxes")),
    ("tax_year", ("taxYear",)),
    ("tax_status", ("taxStatus",)),
    ("tax_account_number", ("taxAccountNumber",)),
    ("land_area", ("landArea", "acreage", "sqft", "lotSize")),
    ("building_area", ("buildingArea", "buildingSqft", "livingArea")),
    ("year_built", ("yearBuilt", "ayb")),
    ("bedrooms", ("bedrooms", "beds")),
    ("bathrooms", ("bathrooms", "baths", "bath")),
    ("latitude", ("latitude", "lat", "y")),
    ("longitude", ("longitude", "lon", "lng", "x")),
)

_KEY_CHARS = re.compile(r'[^a-z0-9]')
_AREA = re.compile(r'([\d.,]+)\s*([A-Za-z]+)?')
_AREA_UNITS = {"ac": "acres", "acre": "acres", "acres": "acres", "sf": "sqft", "sqft": "sqft"}


def _normalize_key(key: str) -> str:
    return _KEY_CHARS.sub('', str(key).lower())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def text(value: Any) -> str:
    """Render a raw scalar as a stripped string ('' for missing values)."""
    if _is_blank(value) or isinstance(value, (dict, list)):
        return ''
    return str(value).strip()


def to_float(value: Any) -> Optional[float]:
    """Parse numbers such as 250055, '250,055', or '$1,200.50'."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    raw = value if isinstance(value, (int, float)) else re.sub(r'[$,\s]', '', str(value))
    try:
        result = float(raw)
    except (ValueError, OverflowError):
        return None
    # NaN and Infinity mark missing cells in tabular exports
    if not math.isfinite(result):
        return None
    return result


def to_int(value: Any) -> Optional[int]:
    """Parse an integer, accepting float-like strings ('2001.0')."""
    number = to_float(value)
    if number is None:
        return None
    return int(number)


def to_datetime(value: Any) -> Optional[datetime]:
    """Accept datetime, date, or ISO-8601 strings; anything else is dropped."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def parse_area(value: Any) -> Tuple[Optional[float], Optional[str]]:
    """Split an area such as '1.2300 AC' or '10,000 SF' into (value, unit)."""
    match = _AREA.search(text(value))
    if not match:
        return None, None
    unit = (match.group(2) or "sqft").lower()
    return to_float(match.group(1)), _AREA_UNITS.get(unit, unit)


def _first(raw: RawRecord, *keys: str) -> Any:
    for key in keys:
        if not _is_blank(raw.get(key)):
            return raw[key]
    return None


class AliasResolver:
    """
    Looks up canonical fields in a raw record using FIELD_ALIASES.

    The first alias holding a non-blank scalar value wins; nested objects
    and lists are passed over.
    """

    def __init__(self, raw: RawRecord, aliases: Iterable[Tuple[str, Tuple[str, ...]]] = FIELD_ALIASES):
        self._index: Dict[str, Any] = {}
        for key, value in raw.items():
            self._index.setdefault(_normalize_key(key), value)
        self._aliases = dict(aliases)

    def get(self, field: str, default: Any = None) -> Any:
        for alias in self._aliases.get(field, ()):
            value = self._index.get(_normalize_key(alias))
            if not _is_blank(value) and not isinstance(value, (dict, list)):
                return value
        return default

    def has_any(self, *fields: str) -> bool:
        return any(self.get(field) is not None for field in fields)


def location_from(latitude: Any, longitude: Any) -> Optional[Location]:
    """Build a Location from source-supplied WGS84 coordinates, if usable."""
    lat, lon = to_float(latitude), to_float(longitude)
    if lat is None or lon is None:
        return None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None
    return Location(coordinates=(lon, lat), latitude=lat, longitude=lon, confidence=1.0)


def source_id_of(raw: RawRecord) -> str:
    """Source identifier stamped on the raw record by its collector."""
    source = raw.get("source")
    if isinstance(source, dict):
        return text(source.get("id")) or "unknown"
    if isinstance(source, str) and source.strip():
        return source.strip()
    return "unknown"


def standardize_generic(raw: RawRecord, base: StandardizedRecord) -> StandardizedRecord:
    """
    Standardize a record from a source with no registered mapping.

    Args:
        raw: Raw record
        base: Empty canonical record carrying provenance metadata

    Returns:
        Populated StandardizedRecord
    """
    fields = AliasResolver(raw)

    zip_raw = fields.get("zip_code")
    zoning = text(fields.get("zoning"))

    update: Dict[str, Any] = {
        "parcel_id": text(fields.get("parcel_id")),
        "property_address": text(fields.get("property_address")),
        "city": text(fields.get("city")),
        "state": text(fields.get("state")),
        "county": text(fields.get("county")),
        "zip_code": normalize_zip(zip_raw) or text(zip_raw),
        "owner_name": text(fields.get("owner_name")),
        "property_type": text(fields.get("property_type")) or determine_property_type(zoning),
    }

    if fields.has_any("sale_amount"):
        update["sale_info"] = SaleInfo(
            sale_amount=to_float(fields.get("sale_amount")) or 0.0,
            sale_date=to_datetime(fields.get("sale_date")),
            sale_type=text(fields.get("sale_type")),
        )

    if fields.has_any("tax_amount", "tax_year"):
        update["tax_info"] = TaxInfo(
            tax_amount=to_float(fields.get("tax_amount")) or 0.0,
            tax_year=to_int(fields.get("tax_year")) or datetime.now().year,
            tax_status=text(fields.get("tax_status")),
            tax_account_number=text(fields.get("tax_account_number")),
        )

    update["property_details"] = PropertyDetails(
        land_area=to_float(fields.get("land_area")),
        building_area=to_float(fields.get("building_area")),
        year_built=to_int(fields.get("year_built")) or None,
        bedrooms=to_int(fields.get("bedrooms")),
        bathrooms=to_float(fields.get("bathrooms")),
        zoning=zoning,
    )

    location = location_from(fields.get("latitude"), fields.get("longitude"))
    if location is not None:
        update["location"] = location

    return base.model_copy(update=update)


def standardize_st_marys_county(raw: RawRecord, base: StandardizedRecord) -> StandardizedRecord:
    """
    Standardize a St. Mary's County, MD treasurer record.

    Records carry accountNumber, ownerName, propertyLocation
    ('1000 Main Street, Leonardtown, MD 20650'), valuation and tax fields.
    Table values win over sdat* details merged in by SDAT enrichment.
    """
    address = text(_first(raw, "propertyLocation", "sdatPremisesAddress"))
    city, zip_code = split_city_zip(address)
    zoning = text(_first(raw, "zoning", "sdatZoning"))
    land_value = _first(raw, "landValue", "sdatLandValue")
    improvement_value = _first(raw, "improvementValue", "sdatImprovementValue")
    total_value = _first(raw, "totalValue", "sdatTotalValue")

    if raw.get("acreage") is not None:
        land_area, land_area_unit = to_float(raw.get("acreage")), "acres"
    else:
        land_area, land_area_unit = parse_area(raw.get("sdatLandArea"))

    update: Dict[str, Any] = {
        "parcel_id": text(raw.get("accountNumber")),
        "property_address": address,
        "city": city,
        "state": "MD",
        "county": "St. Mary's",
        "zip_code": zip_code,
        "owner_name": text(_first(raw, "ownerName", "sdatOwnerName")),
        "property_type": determine_property_type(zoning),
        "tax_info": TaxInfo(
            tax_amount=to_float(raw.get("taxAmount")),
            tax_year=to_int(raw.get("taxYear")),
            tax_status=text(raw.get("taxStatus")) or None,
            tax_account_number=text(raw.get("accountNumber")) or None,
            land_value=to_float(land_value),
            improvement_value=to_float(improvement_value),
            assessed_value=to_float(total_value),
            tax_due=to_float(raw.get("amountDue")),
        ),
        "property_details": PropertyDetails(
            land_area=land_area,
            land_area_unit=land_area_unit,
            year_built=to_int(raw.get("sdatYearBuilt")),
            zoning=zoning or None,
        ),
    }

    if land_value or improvement_value or total_value:
        update["sale_info"] = SaleInfo(
            sale_amount=to_float(total_value) or 0.0,
            sale_type="Assessment",
        )
    elif raw.get("amountDue"):
        update["sale_info"] = SaleInfo(
            sale_amount=to_float(raw.get("amountDue")) or 0.0,
            sale_type="Tax Lien",
            sale_status="Pending",
        )

    return base.model_copy(update=update)
