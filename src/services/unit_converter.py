"""
Unit conversion for parcel measurements.

This module provides:
- Weight conversion to kilograms (canonical weight unit)
- Length conversion to centimeters (canonical length unit)
- The single volumetric-weight formula shared by pricing and dimension storage

Conversion Strategy:
- Weight units convert through kilograms
- Length units convert through centimeters
- Unknown units and negative quantities raise ValidationError
"""

import math
from typing import Union

from src.models.enums import DimensionUnit, WeightUnit
from src.services.exceptions import ValidationError


# ============================================================================
# Standard Conversion Tables
# ============================================================================

# Weight conversions to kilograms (base unit)
WEIGHT_TO_KG = {
    "kg": 1.0,
    "g": 0.001,
    "lb": 0.453592,
    "oz": 0.0283495,
}

# Length conversions to centimeters (base unit)
LENGTH_TO_CM = {
    "cm": 1.0,
    "in": 2.54,
    "m": 100.0,
    "ft": 30.48,
}

DEFAULT_VOLUMETRIC_DIVISOR = 5000.0


def _unit_key(unit: Union[str, WeightUnit, DimensionUnit]) -> str:
    value = unit.value if isinstance(unit, (WeightUnit, DimensionUnit)) else str(unit)
    return value.strip().lower()


def _check_quantity(value: float, label: str) -> None:
    if value is None:
        raise ValidationError([f"{label} is required"])
    if not math.isfinite(value):
        raise ValidationError([f"{label} must be a finite number"])
    if value < 0:
        raise ValidationError([f"{label} cannot be negative"])


# ============================================================================
# Conversions
# ============================================================================


def to_kilograms(value: float, unit: Union[str, WeightUnit]) -> float:
    """
    Convert a weight to kilograms.

    Args:
        value: Weight in ``unit``
        unit: One of kg, g, lb, oz

    Returns:
        Weight in kilograms

    Raises:
        ValidationError: If the unit is unknown or the value negative
    """
    _check_quantity(value, "weight")
    key = _unit_key(unit)
    if key not in WEIGHT_TO_KG:
        raise ValidationError([f"Unknown weight unit: {unit}"])
    return value * WEIGHT_TO_KG[key]


def to_centimeters(value: float, unit: Union[str, DimensionUnit]) -> float:
    """
    Convert a length to centimeters.

    Args:
        value: Length in ``unit``
        unit: One of cm, in, m, ft

    Returns:
        Length in centimeters

    Raises:
        ValidationError: If the unit is unknown or the value negative
    """
    _check_quantity(value, "dimension")
    key = _unit_key(unit)
    if key not in LENGTH_TO_CM:
        raise ValidationError([f"Unknown dimension unit: {unit}"])
    return value * LENGTH_TO_CM[key]


def calculate_volumetric_weight(
    length: float,
    width: float,
    height: float,
    unit: Union[str, DimensionUnit],
    divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
) -> float:
    """
    Volumetric weight in kg: volume in cm³ divided by ``divisor``.

    Used both when pricing a shipment and when storing its Dimensions
    record, so the two can never disagree.

    Example:
        >>> calculate_volumetric_weight(50, 40, 30, "cm")
        12.0
    """
    if divisor <= 0:
        raise ValidationError(["volumetric divisor must be positive"])
    volume_cm3 = (
        to_centimeters(length, unit) * to_centimeters(width, unit) * to_centimeters(height, unit)
    )
    return volume_cm3 / divisor
