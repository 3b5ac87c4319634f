"""
Database models package.

This package contains all SQLAlchemy ORM models for the parcel core.
"""

from .base import Base, BaseModel
from .enums import (
    ParcelStatus,
    PackageType,
    DeliveryType,
    InsuranceCoverage,
    WeightUnit,
    DimensionUnit,
    UserRole,
    CourierAssignmentStatus,
    NotificationType,
    NotificationStatus,
)
from .user import User
from .address import Address
from .dimensions import Dimensions
from .parcel import Parcel
from .tracking_history import TrackingHistoryEntry
from .courier_assignment import CourierAssignment
from .notification import Notification
from .parcel_draft import ParcelDraft
from .saved_recipient import SavedRecipient
from .pricing_history import PricingHistory

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "ParcelStatus",
    "PackageType",
    "DeliveryType",
    "InsuranceCoverage",
    "WeightUnit",
    "DimensionUnit",
    "UserRole",
    "CourierAssignmentStatus",
    "NotificationType",
    "NotificationStatus",
    # Accounts and addresses
    "User",
    "Address",
    # Parcel aggregate
    "Dimensions",
    "Parcel",
    "TrackingHistoryEntry",
    "CourierAssignment",
    "Notification",
    # Wizard and bookkeeping
    "ParcelDraft",
    "SavedRecipient",
    "PricingHistory",
]
