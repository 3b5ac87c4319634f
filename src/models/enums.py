"""
Enumerations shared by the parcel models and services.

This module contains:
- ParcelStatus: Lifecycle states of a parcel
- PackageType, DeliveryType, InsuranceCoverage: Pricing inputs
- WeightUnit, DimensionUnit: Accepted measurement units
- UserRole: Account roles
- CourierAssignmentStatus: Lifecycle of a courier assignment
- NotificationType, NotificationStatus: Outbox classification
"""

from enum import Enum


class ParcelStatus(str, Enum):
    """
    Parcel lifecycle status.

    The allowed transitions between these states live in
    src.services.parcel_state_service.TRANSITIONS.
    """

    PROCESSING = "PROCESSING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELAYED = "DELAYED"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PackageType(str, Enum):
    """Kind of package; each type carries a fixed service surcharge."""

    STANDARD_BOX = "STANDARD_BOX"
    DOCUMENT = "DOCUMENT"
    CLOTHING = "CLOTHING"
    ELECTRONICS = "ELECTRONICS"
    FRAGILE = "FRAGILE"
    LIQUID = "LIQUID"
    PERISHABLE = "PERISHABLE"


class DeliveryType(str, Enum):
    """Delivery speed; selects the speed multiplier and ETA text."""

    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    SAME_DAY = "SAME_DAY"
    OVERNIGHT = "OVERNIGHT"


class InsuranceCoverage(str, Enum):
    """Insurance tier selected for the shipment."""

    NO_INSURANCE = "NO_INSURANCE"
    BASIC_COVERAGE = "BASIC_COVERAGE"
    PREMIUM_COVERAGE = "PREMIUM_COVERAGE"
    CUSTOM_COVERAGE = "CUSTOM_COVERAGE"


class WeightUnit(str, Enum):
    """Accepted weight units."""

    KG = "kg"
    G = "g"
    LB = "lb"
    OZ = "oz"


class DimensionUnit(str, Enum):
    """Accepted length units."""

    CM = "cm"
    IN = "in"
    M = "m"
    FT = "ft"


class UserRole(str, Enum):
    """Account roles."""

    CUSTOMER = "CUSTOMER"
    COURIER = "COURIER"
    ADMIN = "ADMIN"


class CourierAssignmentStatus(str, Enum):
    """
    Courier assignment lifecycle.

    Values:
        ACTIVE: Courier currently responsible for the parcel (at most one per parcel)
        COMPLETED: Parcel delivered under this assignment
        CANCELLED: Assignment ended without delivery
    """

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class NotificationType(str, Enum):
    """Delivery channel for a queued notification."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"


class NotificationStatus(str, Enum):
    """Outbox status of a notification."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
