"""
Pricing engine: shipment attributes in, itemized price breakdown out.

The engine is pure. It holds an immutable PricingConfig and performs no
I/O, so the same ShipmentAttributes always produce the same PriceBreakdown.

Order of operations (compute_price):
    1. actual weight (kg), volumetric weight, billable = max of the two
    2. weight-tier surcharge on billable weight
    3. distance-tier surcharge
    4. package-type (service) surcharge
    5. special-handling fees (additive)
    6. insurance cost
    7. signature fee
    8. pre-speed subtotal = base rate + 2..7
    9. delivery-speed surcharge = pre-speed subtotal * (multiplier - 1)
   10. subtotal, tax, total

Breakdown fields keep full float precision; only quick_estimate() rounds.
Weights or distances beyond the last tier use the last tier's surcharge.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from src.models.enums import (
    DeliveryType,
    DimensionUnit,
    InsuranceCoverage,
    PackageType,
    WeightUnit,
)
from src.services.exceptions import ValidationError
from src.services.pricing_config import PricingConfig
from src.services.unit_converter import calculate_volumetric_weight, to_kilograms

EARTH_RADIUS_KM = 6371.0

Coordinates = Tuple[float, float]


def _coerce_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError([f"Unknown {label}: {value}"])


@dataclass(frozen=True)
class ShipmentAttributes:
    """
    Everything the engine needs to price one shipment.

    Dimensions are optional; without them the volumetric weight is 0 and
    the actual weight is billed. Distance comes from ``distance_km`` when
    given, otherwise from the two coordinate pairs.
    """

    package_type: PackageType
    weight: float
    delivery_type: DeliveryType
    weight_unit: WeightUnit = WeightUnit.KG
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    dimension_unit: DimensionUnit = DimensionUnit.CM
    estimated_value: float = 0.0
    fragile: bool = False
    perishable: bool = False
    hazardous_material: bool = False
    high_value: bool = False
    insurance_coverage: InsuranceCoverage = InsuranceCoverage.NO_INSURANCE
    signature_required: bool = False
    sender_coordinates: Optional[Coordinates] = None
    recipient_coordinates: Optional[Coordinates] = None
    distance_km: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "package_type", _coerce_enum(PackageType, self.package_type, "package type")
        )
        object.__setattr__(
            self, "delivery_type", _coerce_enum(DeliveryType, self.delivery_type, "delivery type")
        )
        object.__setattr__(
            self, "weight_unit", _coerce_enum(WeightUnit, self.weight_unit, "weight unit")
        )
        object.__setattr__(
            self,
            "dimension_unit",
            _coerce_enum(DimensionUnit, self.dimension_unit, "dimension unit"),
        )
        object.__setattr__(
            self,
            "insurance_coverage",
            _coerce_enum(InsuranceCoverage, self.insurance_coverage, "insurance coverage"),
        )

    @property
    def has_dimensions(self) -> bool:
        return None not in (self.length, self.width, self.height)


@dataclass(frozen=True)
class PriceBreakdown:
    """
    Itemized price of a shipment.

    Invariants:
        total == subtotal + tax
        subtotal == pre_speed_subtotal + delivery_speed_surcharge
    """

    base_rate: float
    weight_surcharge: float
    distance_surcharge: float
    service_surcharge: float
    special_handling_surcharge: float
    delivery_speed_surcharge: float
    insurance_cost: float
    signature_cost: float
    subtotal: float
    tax: float
    total: float
    currency: str
    estimated_delivery_days: str
    volumetric_weight: float
    billable_weight: float

    @property
    def pre_speed_subtotal(self) -> float:
        """Subtotal before the delivery-speed multiplier was applied."""
        return self.subtotal - self.delivery_speed_surcharge

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly copy used for pricing history snapshots."""
        return asdict(self)


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two (latitude, longitude) pairs in km."""
    lat1, lon1 = origin
    lat2, lon2 = destination
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _tier_surcharge(tiers: Sequence, bound_attr: str, value: float) -> float:
    """Surcharge of the smallest tier whose bound is >= value; last tier on overflow."""
    for tier in tiers:
        if getattr(tier, bound_attr) >= value:
            return tier.surcharge
    return tiers[-1].surcharge


class PricingEngine:
    """
    Prices shipments against one immutable tariff.

    Args:
        config: Tariff to price against

    Example:
        >>> engine = PricingEngine(default_pricing_config())
        >>> engine.compute_price(attrs, distance_km=8).total
        435.0
    """

    def __init__(self, config: PricingConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Individual steps
    # ------------------------------------------------------------------

    def volumetric_weight(self, attrs: ShipmentAttributes) -> float:
        if not attrs.has_dimensions:
            return 0.0
        return calculate_volumetric_weight(
            attrs.length,
            attrs.width,
            attrs.height,
            attrs.dimension_unit,
            divisor=self.config.volumetric_divisor,
        )

    def weight_surcharge(self, billable_weight: float) -> float:
        return _tier_surcharge(self.config.weight_tiers, "max_weight", billable_weight)

    def distance_surcharge(self, distance_km: float) -> float:
        return _tier_surcharge(self.config.distance_tiers, "max_distance", distance_km)

    def service_surcharge(self, package_type: PackageType) -> float:
        return self.config.package_type_surcharges[package_type]

    def special_handling_surcharge(self, attrs: ShipmentAttributes) -> float:
        fees = self.config.special_handling_fees
        total = 0.0
        if attrs.fragile:
            total += fees.fragile
        if attrs.perishable:
            total += fees.perishable
        if attrs.hazardous_material:
            total += fees.hazardous_material
        if attrs.high_value:
            total += fees.high_value
        return total

    def insurance_cost(self, coverage: InsuranceCoverage, estimated_value: float) -> float:
        if coverage == InsuranceCoverage.NO_INSURANCE:
            return 0.0
        rate = self.config.insurance_rates[coverage]
        return rate.fixed_cost + min(estimated_value, rate.max_coverage) * rate.percentage_rate

    def resolve_distance(
        self, attrs: ShipmentAttributes, distance_km: Optional[float] = None
    ) -> float:
        """Explicit distance, else attrs.distance_km, else Haversine, else 0."""
        if distance_km is not None:
            return distance_km
        if attrs.distance_km is not None:
            return attrs.distance_km
        if attrs.sender_coordinates and attrs.recipient_coordinates:
            return haversine_km(attrs.sender_coordinates, attrs.recipient_coordinates)
        return 0.0

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def compute_price(
        self, attrs: ShipmentAttributes, distance_km: Optional[float] = None
    ) -> PriceBreakdown:
        """
        Compute the full price breakdown for a shipment.

        Args:
            attrs: Shipment attributes
            distance_km: Optional precomputed distance; overrides the
                attribute distance and coordinates

        Returns:
            PriceBreakdown with unrounded values

        Raises:
            ValidationError: If weight, dimensions or distance are negative
                or a unit is unknown
        """
        cfg = self.config

        actual_weight = to_kilograms(attrs.weight, attrs.weight_unit)
        volumetric = self.volumetric_weight(attrs)
        billable = max(actual_weight, volumetric)

        distance = self.resolve_distance(attrs, distance_km)
        if not math.isfinite(distance):
            raise ValidationError(["distance must be a finite number"])
        if distance < 0:
            raise ValidationError(["distance cannot be negative"])
        if not math.isfinite(attrs.estimated_value) or attrs.estimated_value < 0:
            raise ValidationError(["estimated value must be a finite, non-negative number"])

        weight_surcharge = self.weight_surcharge(billable)
        distance_surcharge = self.distance_surcharge(distance)
        service_surcharge = self.service_surcharge(attrs.package_type)
        special_handling = self.special_handling_surcharge(attrs)
        insurance = self.insurance_cost(attrs.insurance_coverage, attrs.estimated_value)
        signature = cfg.special_handling_fees.signature_required if attrs.signature_required else 0.0

        pre_speed_subtotal = (
            cfg.base_rate
            + weight_surcharge
            + distance_surcharge
            + service_surcharge
            + special_handling
            + insurance
            + signature
        )

        option = cfg.delivery_options[attrs.delivery_type]
        speed_surcharge = pre_speed_subtotal * (option.multiplier - 1)

        subtotal = pre_speed_subtotal + speed_surcharge
        tax = subtotal * cfg.tax_rate

        return PriceBreakdown(
            base_rate=cfg.base_rate,
            weight_surcharge=weight_surcharge,
            distance_surcharge=distance_surcharge,
            service_surcharge=service_surcharge,
            special_handling_surcharge=special_handling,
            delivery_speed_surcharge=speed_surcharge,
            insurance_cost=insurance,
            signature_cost=signature,
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            currency=cfg.currency,
            estimated_delivery_days=option.estimated_days,
            volumetric_weight=volumetric,
            billable_weight=billable,
        )

    def quick_estimate(
        self,
        weight: float,
        unit: Union[str, WeightUnit],
        package_type: Union[str, PackageType],
        delivery_type: Union[str, DeliveryType],
    ) -> float:
        """
        Low-latency estimate for pre-checkout screens.

        Uses the actual weight only and leaves out distance, special
        handling, insurance and signature. Rounded to 2 decimal places.
        """
        cfg = self.config
        package_type = _coerce_enum(PackageType, package_type, "package type")
        delivery_type = _coerce_enum(DeliveryType, delivery_type, "delivery type")

        weight_kg = to_kilograms(weight, unit)
        pre_speed_subtotal = (
            cfg.base_rate + self.weight_surcharge(weight_kg) + self.service_surcharge(package_type)
        )
        subtotal = pre_speed_subtotal * cfg.delivery_options[delivery_type].multiplier
        return round(subtotal * (1 + cfg.tax_rate), 2)

    def describe_tariff(self) -> Dict[str, Any]:
        """JSON-friendly view of the tariff for quote screens."""
        cfg = self.config
        return {
            "base_rate": cfg.base_rate,
            "tax_rate": cfg.tax_rate,
            "currency": cfg.currency,
            "volumetric_divisor": cfg.volumetric_divisor,
            "weight_tiers": [asdict(t) for t in cfg.weight_tiers],
            "distance_tiers": [asdict(t) for t in cfg.distance_tiers],
            "package_types": {k.value: v for k, v in cfg.package_type_surcharges.items()},
            "delivery_options": {
                k.value: {"multiplier": v.multiplier, "estimated_days": v.estimated_days}
                for k, v in cfg.delivery_options.items()
            },
            "insurance_options": {k.value: asdict(v) for k, v in cfg.insurance_rates.items()},
            "special_handling_fees": asdict(cfg.special_handling_fees),
        }
