"""
Input validation functions for the SendIT parcel core.

This module provides validation functions for shipment input including:
- Numeric validation (positive, non-negative)
- String validation (required fields)
- Enum choice validation (package type, units, delivery type, ...)
- Whole shipment payload validation for parcel creation

Field validators return ``(is_valid, error_message)``; the payload
validators collect every failure and return ``(is_valid, list_of_errors)``
so the caller can report all problems at once.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Type

from src.models.enums import (
    DeliveryType,
    DimensionUnit,
    InsuranceCoverage,
    PackageType,
    WeightUnit,
)

from .constants import (
    ERROR_INVALID_CHOICE,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_SECTION,
    ERROR_REQUIRED_FIELD,
)


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    try:
        num_value = float(value)
        if not math.isfinite(num_value):
            return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
        if num_value <= 0:
            return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    try:
        num_value = float(value)
        if not math.isfinite(num_value):
            return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
        if num_value < 0:
            return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_choice(value: Any, enum_cls: Type[Enum], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value names a member of ``enum_cls``.

    Accepts the member itself or its value.
    """
    if value is None or value == "":
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    try:
        enum_cls(value)
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        return False, f"{field_name}: {ERROR_INVALID_CHOICE} '{value}'. Valid: {valid}"
    return True, ""


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an optional datetime given as datetime, date or ISO-8601 string.

    Raises:
        ValueError: If a string is not ISO-8601
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def validate_datetime(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """Validate an optional datetime field."""
    try:
        parse_datetime(value)
    except (ValueError, TypeError):
        return False, f"{field_name}: Must be an ISO-8601 date/time"
    return True, ""


def _section(data: Mapping, key: str, label: str, errors: list) -> Mapping:
    value = data.get(key)
    if value is None:
        errors.append(f"{label}: {ERROR_REQUIRED_FIELD}")
        return {}
    if not isinstance(value, Mapping):
        errors.append(f"{label}: {ERROR_INVALID_SECTION}")
        return {}
    return value


def _check(errors: list, result: Tuple[bool, str]) -> None:
    is_valid, error = result
    if not is_valid:
        errors.append(error)


def validate_address_data(data: Mapping, label: str = "Address") -> Tuple[bool, list]:
    """
    Validate the fields of an address.

    Street and city are required; coordinates, when given, must be given
    together and be numeric.
    """
    errors = []

    _check(errors, validate_required_string(data.get("street"), f"{label} street"))
    _check(errors, validate_required_string(data.get("city"), f"{label} city"))

    latitude = data.get("latitude")
    longitude = data.get("longitude")
    if (latitude is None) != (longitude is None):
        errors.append(f"{label} coordinates: latitude and longitude must be given together")
    elif latitude is not None:
        for value, name in ((latitude, "latitude"), (longitude, "longitude")):
            try:
                if not math.isfinite(float(value)):
                    errors.append(f"{label} {name}: {ERROR_INVALID_NUMBER}")
            except (ValueError, TypeError):
                errors.append(f"{label} {name}: {ERROR_INVALID_NUMBER}")

    return len(errors) == 0, errors


def _validate_party(data: Mapping, label: str, address_key: str, errors: list) -> None:
    _check(errors, validate_required_string(data.get("full_name"), f"{label} name"))
    _check(errors, validate_required_string(data.get("email"), f"{label} email"))
    _check(errors, validate_required_string(data.get("phone"), f"{label} phone"))

    address = _section(data, address_key, f"{label} address", errors)
    if address:
        _, address_errors = validate_address_data(address, f"{label} address")
        errors.extend(address_errors)


def validate_parcel_details(data: Mapping) -> Tuple[bool, list]:
    """
    Validate the package section of a shipment.

    Covers package type, positive weight and dimensions, known units, the
    insurance tier and a non-negative declared value.
    """
    errors = []

    _check(errors, validate_choice(data.get("package_type"), PackageType, "Package type"))
    _check(errors, validate_positive_number(data.get("weight"), "Weight"))
    _check(
        errors,
        validate_choice(data.get("weight_unit", WeightUnit.KG.value), WeightUnit, "Weight unit"),
    )

    dimensions = _section(data, "dimensions", "Dimensions", errors)
    if dimensions:
        for key in ("length", "width", "height"):
            _check(errors, validate_positive_number(dimensions.get(key), f"Dimensions {key}"))
        _check(
            errors,
            validate_choice(
                dimensions.get("unit", DimensionUnit.CM.value), DimensionUnit, "Dimension unit"
            ),
        )

    if data.get("estimated_value") is not None:
        _check(errors, validate_non_negative_number(data.get("estimated_value"), "Estimated value"))

    _check(
        errors,
        validate_choice(
            data.get("insurance_coverage", InsuranceCoverage.NO_INSURANCE.value),
            InsuranceCoverage,
            "Insurance coverage",
        ),
    )

    special = data.get("special_handling")
    if special is not None and not isinstance(special, Mapping):
        errors.append(f"Special handling: {ERROR_INVALID_SECTION}")

    return len(errors) == 0, errors


def validate_shipment_payload(data: Any) -> Tuple[bool, list]:
    """
    Validate a complete parcel creation payload.

    Expected sections: sender, recipient, parcel and delivery (see
    parcel_creation_service for the full layout). Every failure is
    reported, not just the first.

    Args:
        data: The payload to validate

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not isinstance(data, Mapping):
        return False, [f"Payload: {ERROR_INVALID_SECTION}"]

    errors = []

    sender = _section(data, "sender", "Sender", errors)
    if sender:
        _validate_party(sender, "Sender", "pickup_address", errors)

    recipient = _section(data, "recipient", "Recipient", errors)
    if recipient:
        _validate_party(recipient, "Recipient", "delivery_address", errors)

    parcel = _section(data, "parcel", "Parcel", errors)
    if parcel:
        _, parcel_errors = validate_parcel_details(parcel)
        errors.extend(parcel_errors)

    delivery = _section(data, "delivery", "Delivery", errors)
    if delivery:
        _check(errors, validate_choice(delivery.get("delivery_type"), DeliveryType, "Delivery type"))
        if delivery.get("distance_km") is not None:
            _check(errors, validate_non_negative_number(delivery.get("distance_km"), "Distance"))
        _check(errors, validate_datetime(delivery.get("pickup_date"), "Pickup date"))
        _check(errors, validate_datetime(delivery.get("estimated_delivery"), "Estimated delivery"))

    return len(errors) == 0, errors


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string value by stripping whitespace and converting empty strings to None.

    Args:
        value: The string value to sanitize

    Returns:
        Sanitized string or None
    """
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
