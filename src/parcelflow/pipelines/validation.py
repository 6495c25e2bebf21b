"""
Validation Rules

Soft checks run at the end of the transformation pipeline. Rules only report
findings (ValidationResult entries on the record's metadata); callers decide
whether an invalid record is stored, quarantined, or dropped.
"""
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List

from src.parcelflow.models.property import StandardizedRecord, ValidationResult

ValidateFn = Callable[[StandardizedRecord], ValidationResult]

REQUIRED_FIELDS = ("parcel_id", "property_address", "state")
IDENTITY_FIELDS = ("parcel_id", "state", "county")

_ZIP_PATTERN = re.compile(r'^\d{5}(-\d{4})?$')


@dataclass(frozen=True)
class ValidationRule:
    """Named validation function registrable into the pipeline."""

    name: str
    validate: ValidateFn


def missing_fields(record: StandardizedRecord, fields: Iterable[str]) -> List[str]:
    """Names of fields that are empty on the record."""
    return [field for field in fields if not getattr(record, field, None)]


def required_fields_rule(
    name: str = "Required Fields",
    fields: Iterable[str] = REQUIRED_FIELDS,
) -> ValidationRule:
    """Rule failing when any of the given fields is empty."""
    fields = tuple(fields)

    def validate(record: StandardizedRecord) -> ValidationResult:
        missing = missing_fields(record, fields)
        if missing:
            return ValidationResult(
                rule=name,
                valid=False,
                message=f"Missing required fields: {', '.join(missing)}",
            )
        return ValidationResult(rule=name, valid=True)

    return ValidationRule(name=name, validate=validate)


def _validate_zip_code(record: StandardizedRecord) -> ValidationResult:
    if record.zip_code and not _ZIP_PATTERN.match(record.zip_code):
        return ValidationResult(
            rule="ZIP Code Format",
            valid=False,
            message=f"ZIP code '{record.zip_code}' is not a 5-digit ZIP",
        )
    return ValidationResult(rule="ZIP Code Format", valid=True)


zip_code_rule = ValidationRule(name="ZIP Code Format", validate=_validate_zip_code)


def default_validation_rules() -> List[ValidationRule]:
    """Rules every pipeline starts with."""
    return [
        required_fields_rule("Required Fields", REQUIRED_FIELDS),
        required_fields_rule("Identity Fields", IDENTITY_FIELDS),
        zip_code_rule,
    ]
