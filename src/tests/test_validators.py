"""
Tests for input validation functions.

Tests cover all validation functions in the validators module including:
- String validation (required)
- Numeric validation (positive, non-negative)
- Enum choice validation
- Complete shipment payload validation

Field validators return (is_valid, error); payload validators collect every
failure into a list.
"""

from datetime import date, datetime

import pytest

from src.models import PackageType, WeightUnit
from src.utils import validators


class TestStringValidation:
    """Test string validation functions."""

    def test_validate_required_string_valid(self):
        assert validators.validate_required_string("Jane", "Name") == (True, "")

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_validate_required_string_empty(self, value):
        is_valid, error = validators.validate_required_string(value, "Name")
        assert not is_valid
        assert error == "Name: This field is required"

    def test_sanitize_string(self):
        assert validators.sanitize_string("  Westlands ") == "Westlands"
        assert validators.sanitize_string("   ") is None
        assert validators.sanitize_string(None) is None


class TestNumericValidation:
    """Test numeric validation functions."""

    @pytest.mark.parametrize("value", [1, 0.01, "2.5"])
    def test_positive_valid(self, value):
        assert validators.validate_positive_number(value, "Weight")[0]

    def test_positive_rejects_zero(self):
        is_valid, error = validators.validate_positive_number(0, "Weight")
        assert not is_valid
        assert "greater than zero" in error

    @pytest.mark.parametrize("value", [True, "heavy", None])
    def test_positive_rejects_non_numbers(self, value):
        is_valid, error = validators.validate_positive_number(value, "Weight")
        assert not is_valid
        assert "valid number" in error

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf", float("nan"), float("inf")])
    def test_non_finite_rejected(self, value):
        for validate in (validators.validate_positive_number, validators.validate_non_negative_number):
            is_valid, error = validate(value, "Weight")
            assert not is_valid
            assert error == "Weight: Must be a valid number"

    def test_non_negative_accepts_zero(self):
        assert validators.validate_non_negative_number(0, "Value")[0]

    def test_non_negative_rejects_negative(self):
        is_valid, error = validators.validate_non_negative_number(-1, "Value")
        assert not is_valid
        assert "Cannot be negative" in error


class TestChoiceValidation:
    def test_member_or_value(self):
        assert validators.validate_choice(PackageType.FRAGILE, PackageType, "Package type")[0]
        assert validators.validate_choice("kg", WeightUnit, "Weight unit")[0]

    def test_unknown_value_lists_choices(self):
        is_valid, error = validators.validate_choice("st", WeightUnit, "Weight unit")
        assert not is_valid
        assert "'st'" in error
        assert "kg, g, lb" in error

    def test_missing_value(self):
        is_valid, error = validators.validate_choice("", WeightUnit, "Weight unit")
        assert not is_valid
        assert "required" in error


class TestDatetimeParsing:
    def test_parse_variants(self):
        assert validators.parse_datetime(None) is None
        assert validators.parse_datetime("2026-03-01T10:30:00") == datetime(2026, 3, 1, 10, 30)
        assert validators.parse_datetime(date(2026, 3, 1)) == datetime(2026, 3, 1)

    def test_invalid_string(self):
        is_valid, error = validators.validate_datetime("next tuesday", "Pickup date")
        assert not is_valid
        assert error.startswith("Pickup date:")


class TestShipmentPayloadValidation:
    """Test validate_shipment_payload()."""

    def test_valid_payload(self, payload):
        assert validators.validate_shipment_payload(payload) == (True, [])

    def test_not_a_mapping(self):
        is_valid, errors = validators.validate_shipment_payload(["sender"])
        assert not is_valid
        assert errors == ["Payload: Must be an object"]

    def test_missing_sections(self):
        is_valid, errors = validators.validate_shipment_payload({})
        assert not is_valid
        assert errors == [
            "Sender: This field is required",
            "Recipient: This field is required",
            "Parcel: This field is required",
            "Delivery: This field is required",
        ]

    def test_reports_every_failure(self, make_payload):
        payload = make_payload(
            parcel={"weight": -1, "package_type": "CRATE"},
            delivery={"delivery_type": "TELEPORT", "distance_km": -5},
        )

        is_valid, errors = validators.validate_shipment_payload(payload)

        assert not is_valid
        assert len(errors) == 4
        assert any(e.startswith("Weight:") for e in errors)
        assert any(e.startswith("Package type:") for e in errors)
        assert any(e.startswith("Delivery type:") for e in errors)
        assert any(e.startswith("Distance:") for e in errors)

    def test_coordinates_must_be_paired(self, make_payload):
        payload = make_payload()
        del payload["recipient"]["delivery_address"]["longitude"]

        is_valid, errors = validators.validate_shipment_payload(payload)

        assert not is_valid
        assert errors == [
            "Recipient address coordinates: latitude and longitude must be given together"
        ]

    def test_coordinates_must_be_finite(self, make_payload):
        payload = make_payload()
        payload["recipient"]["delivery_address"]["longitude"] = float("inf")

        _, errors = validators.validate_shipment_payload(payload)

        assert errors == ["Recipient address longitude: Must be a valid number"]

    def test_missing_contact(self, make_payload):
        payload = make_payload(sender={"phone": ""})

        _, errors = validators.validate_shipment_payload(payload)

        assert errors == ["Sender phone: This field is required"]

    def test_dimensions_must_be_positive(self, make_payload):
        payload = make_payload(parcel={"dimensions": {"length": 30, "width": 0, "height": 10}})

        _, errors = validators.validate_shipment_payload(payload)

        assert errors == ["Dimensions width: Must be greater than zero"]
