"""
Parcel model: the shipment entity at the center of the parcel core.

A parcel is created exclusively by parcel_creation_service and afterwards
mutated only through parcel_state_service and courier_assignment_service.
Pricing columns are a frozen copy of the PriceBreakdown computed at
creation time; they are never recomputed.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Enum as SQLEnum,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import (
    DeliveryType,
    InsuranceCoverage,
    PackageType,
    ParcelStatus,
    WeightUnit,
)


class Parcel(BaseModel):
    """
    A shipment from a sender to a recipient.

    Attributes:
        tracking_number: Globally unique public identifier (immutable)
        status: ParcelStatus; changed only through the state machine
        version: Optimistic concurrency counter, bumped on every UPDATE
        sender_id: User who created the parcel
        recipient_id: Recipient's account, if the recipient email is registered
        sender_address_id, recipient_address_id, dimensions_id: 1:1 owned records
        base_price .. total_price, currency: Frozen pricing snapshot
        actual_delivery: Set when the parcel enters DELIVERED
        deleted_at: Soft-delete timestamp
    """

    __tablename__ = "parcels"

    tracking_number = Column(String(20), nullable=False, unique=True)
    status = Column(
        SQLEnum(ParcelStatus), nullable=False, default=ParcelStatus.PAYMENT_PENDING
    )
    version = Column(Integer, nullable=False, default=1)

    # Parties
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Owned records
    sender_address_id = Column(
        Integer, ForeignKey("addresses.id", ondelete="RESTRICT"), nullable=False
    )
    recipient_address_id = Column(
        Integer, ForeignKey("addresses.id", ondelete="RESTRICT"), nullable=False
    )
    dimensions_id = Column(
        Integer, ForeignKey("dimensions.id", ondelete="RESTRICT"), nullable=False
    )

    # Pricing snapshot (full float precision)
    base_price = Column(Float, nullable=False)
    weight_surcharge = Column(Float, nullable=False, default=0.0)
    distance_surcharge = Column(Float, nullable=False, default=0.0)
    service_surcharge = Column(Float, nullable=False, default=0.0)
    special_handling_surcharge = Column(Float, nullable=False, default=0.0)
    delivery_speed_surcharge = Column(Float, nullable=False, default=0.0)
    insurance_cost = Column(Float, nullable=False, default=0.0)
    signature_cost = Column(Float, nullable=False, default=0.0)
    subtotal = Column(Float, nullable=False)
    tax = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    estimated_delivery_days = Column(String(50), nullable=True)
    volumetric_weight = Column(Float, nullable=False, default=0.0)
    billable_weight = Column(Float, nullable=False, default=0.0)

    # Package details
    package_type = Column(SQLEnum(PackageType), nullable=False)
    weight = Column(Float, nullable=False)
    weight_unit = Column(SQLEnum(WeightUnit), nullable=False, default=WeightUnit.KG)
    estimated_value = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)

    # Delivery
    delivery_type = Column(SQLEnum(DeliveryType), nullable=False)
    pickup_date = Column(DateTime(timezone=True), nullable=True)
    pickup_time_slot = Column(String(50), nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    actual_delivery = Column(DateTime(timezone=True), nullable=True)

    # Special handling flags
    fragile = Column(Boolean, nullable=False, default=False)
    perishable = Column(Boolean, nullable=False, default=False)
    hazardous_material = Column(Boolean, nullable=False, default=False)
    high_value = Column(Boolean, nullable=False, default=False)

    # Instructions
    pickup_instructions = Column(Text, nullable=True)
    delivery_instructions = Column(Text, nullable=True)
    packaging_instructions = Column(Text, nullable=True)
    special_handling = Column(Text, nullable=True)

    # Insurance and preferences
    insurance_coverage = Column(
        SQLEnum(InsuranceCoverage), nullable=False, default=InsuranceCoverage.NO_INSURANCE
    )
    signature_required = Column(Boolean, nullable=False, default=False)
    email_notifications = Column(Boolean, nullable=False, default=True)
    sms_notifications = Column(Boolean, nullable=False, default=False)
    contactless_delivery = Column(Boolean, nullable=False, default=False)

    # Backup delivery options
    retry_next_business_day = Column(Boolean, nullable=False, default=False)
    leave_with_neighbor = Column(Boolean, nullable=False, default=False)
    hold_at_pickup_point = Column(Boolean, nullable=False, default=False)
    return_to_sender = Column(Boolean, nullable=False, default=False)

    # Audit
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    sender_address = relationship("Address", foreign_keys=[sender_address_id])
    recipient_address = relationship("Address", foreign_keys=[recipient_address_id])
    dimensions = relationship("Dimensions")
    tracking_history = relationship(
        "TrackingHistoryEntry",
        back_populates="parcel",
        order_by="TrackingHistoryEntry.id",
        passive_deletes=True,
    )
    courier_assignments = relationship(
        "CourierAssignment",
        back_populates="parcel",
        order_by="CourierAssignment.id",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_parcel_status", "status"),
        Index("idx_parcel_sender", "sender_id"),
        Index("idx_parcel_recipient", "recipient_id"),
        CheckConstraint("weight > 0", name="ck_parcel_weight_positive"),
        CheckConstraint("estimated_value >= 0", name="ck_parcel_value_non_negative"),
    )

    @property
    def is_deleted(self) -> bool:
        """True if the parcel has been soft-deleted."""
        return self.deleted_at is not None

    def __repr__(self) -> str:
        """String representation of parcel."""
        status = self.status.value if self.status else None
        return f"Parcel(id={self.id}, tracking_number='{self.tracking_number}', status={status})"
