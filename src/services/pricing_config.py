"""
Pricing tariff configuration.

The tariff is an immutable value: built once (from the defaults below or a
JSON file named by SENDIT_PRICING_CONFIG) and injected into PricingEngine.
Nothing mutates it afterwards, so a price computation can never observe a
half-reloaded tariff.

Usage:
    from src.services.pricing_config import get_pricing_config
    from src.services.pricing_engine import PricingEngine

    engine = PricingEngine(get_pricing_config())

Tests build alternate tariffs with default_pricing_config() and
dataclasses.replace().
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from src.models.enums import DeliveryType, InsuranceCoverage, PackageType
from src.utils.config import get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightTier:
    """Surcharge for billable weights up to and including ``max_weight`` kg."""

    tier: str
    max_weight: float
    surcharge: float


@dataclass(frozen=True)
class DistanceTier:
    """Surcharge for distances up to and including ``max_distance`` km."""

    tier: str
    max_distance: float
    surcharge: float


@dataclass(frozen=True)
class DeliveryOption:
    """Speed multiplier and customer-facing ETA for a delivery type."""

    multiplier: float
    estimated_days: str


@dataclass(frozen=True)
class InsuranceRate:
    """Insurance pricing: fixed_cost + min(value, max_coverage) * percentage_rate."""

    fixed_cost: float
    percentage_rate: float
    max_coverage: float


@dataclass(frozen=True)
class SpecialHandlingFees:
    """Flat fees for each special-handling flag and for signature on delivery."""

    fragile: float = 75.0
    perishable: float = 150.0
    hazardous_material: float = 300.0
    high_value: float = 200.0
    signature_required: float = 25.0


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class PricingConfig:
    """
    Complete pricing tariff.

    Attributes:
        base_rate: Flat rate every shipment starts from
        tax_rate: Tax applied to the subtotal (0.16 = 16%)
        currency: ISO currency code
        weight_tiers: Ascending by max_weight
        distance_tiers: Ascending by max_distance
        package_type_surcharges: Fixed surcharge per PackageType (may be negative)
        delivery_options: Multiplier and ETA per DeliveryType
        insurance_rates: Rate per InsuranceCoverage
        special_handling_fees: Flag fees and signature fee
        volumetric_divisor: cm³ per volumetric kg

    Raises:
        ValueError: If tiers are empty or unsorted, an enum member has no
            price, or a rate is out of range
    """

    base_rate: float
    tax_rate: float
    currency: str
    weight_tiers: Tuple[WeightTier, ...]
    distance_tiers: Tuple[DistanceTier, ...]
    package_type_surcharges: Mapping[PackageType, float]
    delivery_options: Mapping[DeliveryType, DeliveryOption]
    insurance_rates: Mapping[InsuranceCoverage, InsuranceRate]
    special_handling_fees: SpecialHandlingFees = field(default_factory=SpecialHandlingFees)
    volumetric_divisor: float = 5000.0

    def __post_init__(self) -> None:
        """Validate the tariff and freeze its containers."""
        object.__setattr__(self, "weight_tiers", tuple(self.weight_tiers))
        object.__setattr__(self, "distance_tiers", tuple(self.distance_tiers))
        object.__setattr__(self, "package_type_surcharges", _frozen(self.package_type_surcharges))
        object.__setattr__(self, "delivery_options", _frozen(self.delivery_options))
        object.__setattr__(self, "insurance_rates", _frozen(self.insurance_rates))

        errors = []
        if self.base_rate < 0:
            errors.append("base_rate must be >= 0")
        if not 0 <= self.tax_rate < 1:
            errors.append("tax_rate must be in [0, 1)")
        if self.volumetric_divisor <= 0:
            errors.append("volumetric_divisor must be > 0")

        for name, tiers, key in (
            ("weight_tiers", self.weight_tiers, "max_weight"),
            ("distance_tiers", self.distance_tiers, "max_distance"),
        ):
            if not tiers:
                errors.append(f"{name} must not be empty")
                continue
            bounds = [getattr(t, key) for t in tiers]
            if bounds != sorted(bounds) or len(set(bounds)) != len(bounds):
                errors.append(f"{name} must be strictly ascending by {key}")

        for enum_cls, table, name in (
            (PackageType, self.package_type_surcharges, "package_type_surcharges"),
            (DeliveryType, self.delivery_options, "delivery_options"),
            (InsuranceCoverage, self.insurance_rates, "insurance_rates"),
        ):
            missing = [member.value for member in enum_cls if member not in table]
            if missing:
                errors.append(f"{name} missing: {', '.join(missing)}")

        for delivery_type, option in self.delivery_options.items():
            if option.multiplier < 1:
                errors.append(f"delivery multiplier for {delivery_type.value} must be >= 1")

        if errors:
            raise ValueError("Invalid pricing config: " + "; ".join(errors))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingConfig":
        """
        Build a tariff from a JSON-style dict.

        Keys mirror the attribute names; enum-keyed tables use the enum
        values as keys. Missing special_handling_fees/volumetric_divisor
        fall back to the defaults.
        """
        fees = data.get("special_handling_fees")
        return cls(
            base_rate=float(data["base_rate"]),
            tax_rate=float(data["tax_rate"]),
            currency=str(data["currency"]),
            weight_tiers=tuple(
                WeightTier(t["tier"], float(t["max_weight"]), float(t["surcharge"]))
                for t in data["weight_tiers"]
            ),
            distance_tiers=tuple(
                DistanceTier(t["tier"], float(t["max_distance"]), float(t["surcharge"]))
                for t in data["distance_tiers"]
            ),
            package_type_surcharges={
                PackageType(k): float(v) for k, v in data["package_type_surcharges"].items()
            },
            delivery_options={
                DeliveryType(k): DeliveryOption(float(v["multiplier"]), str(v["estimated_days"]))
                for k, v in data["delivery_options"].items()
            },
            insurance_rates={
                InsuranceCoverage(k): InsuranceRate(
                    float(v["fixed_cost"]), float(v["percentage_rate"]), float(v["max_coverage"])
                )
                for k, v in data["insurance_rates"].items()
            },
            special_handling_fees=(
                SpecialHandlingFees(**{k: float(v) for k, v in fees.items()})
                if fees
                else SpecialHandlingFees()
            ),
            volumetric_divisor=float(data.get("volumetric_divisor", 5000.0)),
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "PricingConfig":
        """Load a tariff from a JSON file."""
        with open(path, "r", encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))


def default_pricing_config() -> PricingConfig:
    """Built-in tariff (KES)."""
    return PricingConfig(
        base_rate=150.0,
        tax_rate=0.16,
        currency="KES",
        weight_tiers=(
            WeightTier("Light", 1.0, 0.0),
            WeightTier("Standard", 5.0, 100.0),
            WeightTier("Heavy", 20.0, 300.0),
            WeightTier("Extra Heavy", 50.0, 600.0),
        ),
        distance_tiers=(
            DistanceTier("Local", 10.0, 0.0),
            DistanceTier("City", 50.0, 50.0),
            DistanceTier("Regional", 200.0, 150.0),
            DistanceTier("National", 1000.0, 300.0),
        ),
        package_type_surcharges={
            PackageType.STANDARD_BOX: 0.0,
            PackageType.DOCUMENT: -50.0,
            PackageType.CLOTHING: 0.0,
            PackageType.ELECTRONICS: 100.0,
            PackageType.FRAGILE: 150.0,
            PackageType.LIQUID: 200.0,
            PackageType.PERISHABLE: 250.0,
        },
        delivery_options={
            DeliveryType.STANDARD: DeliveryOption(1.0, "3-5 business days"),
            DeliveryType.EXPRESS: DeliveryOption(1.5, "1-2 business days"),
            DeliveryType.SAME_DAY: DeliveryOption(2.5, "Same day (4-6 hours)"),
            DeliveryType.OVERNIGHT: DeliveryOption(2.0, "Next business day"),
        },
        insurance_rates={
            InsuranceCoverage.NO_INSURANCE: InsuranceRate(0.0, 0.0, 0.0),
            InsuranceCoverage.BASIC_COVERAGE: InsuranceRate(50.0, 0.005, 10000.0),
            InsuranceCoverage.PREMIUM_COVERAGE: InsuranceRate(150.0, 0.01, 50000.0),
            InsuranceCoverage.CUSTOM_COVERAGE: InsuranceRate(100.0, 0.015, 500000.0),
        },
        special_handling_fees=SpecialHandlingFees(),
        volumetric_divisor=5000.0,
    )


# Process-wide tariff, loaded on first use
_pricing_config: Optional[PricingConfig] = None


def get_pricing_config() -> PricingConfig:
    """
    Get the process-wide tariff.

    Loaded once: from the file named by SENDIT_PRICING_CONFIG if set,
    otherwise the built-in defaults.
    """
    global _pricing_config

    if _pricing_config is None:
        path = get_config().pricing_config_path
        if path is not None:
            logger.info(f"Loading pricing config from {path}")
            _pricing_config = PricingConfig.from_json_file(path)
        else:
            _pricing_config = default_pricing_config()

    return _pricing_config


def reset_pricing_config() -> None:
    """
    Drop the cached tariff.

    Useful for testing.
    """
    global _pricing_config
    _pricing_config = None
