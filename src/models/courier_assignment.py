"""
CourierAssignment model linking a parcel to the courier carrying it.

A parcel may collect several assignment records over its lifetime, but at
most one of them is ACTIVE. That rule is enforced twice: by the partial
unique index below, and by courier_assignment_service re-checking inside
the assignment transaction.
"""

from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    Index,
    Enum as SQLEnum,
    text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import CourierAssignmentStatus
from src.utils.datetime_utils import utc_now


class CourierAssignment(BaseModel):
    """
    One attempt at handing a parcel to a courier.

    Attributes:
        parcel_id: Assigned parcel
        courier_id: Courier user
        assigned_by: Admin who made the assignment
        assigned_at: When the assignment was made
        status: ACTIVE, COMPLETED or CANCELLED
        completed_at: When the assignment left ACTIVE
    """

    __tablename__ = "courier_assignments"

    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False)
    courier_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    status = Column(
        SQLEnum(CourierAssignmentStatus),
        nullable=False,
        default=CourierAssignmentStatus.ACTIVE,
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)

    parcel = relationship("Parcel", back_populates="courier_assignments")
    courier = relationship("User", foreign_keys=[courier_id])

    __table_args__ = (
        Index("idx_courier_assignment_courier", "courier_id"),
        Index("idx_courier_assignment_parcel", "parcel_id"),
        # At most one ACTIVE assignment per parcel
        Index(
            "uq_courier_assignment_active_parcel",
            "parcel_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    def __repr__(self) -> str:
        """String representation of the assignment."""
        status = self.status.value if self.status else None
        return (
            f"CourierAssignment(id={self.id}, parcel_id={self.parcel_id}, "
            f"courier_id={self.courier_id}, status={status})"
        )
