"""
TrackingHistoryEntry model: the append-only audit log of a parcel.

One entry is written by parcel creation, by every state transition and by
courier assignment. The service layer exposes no update or delete.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    DateTime,
    ForeignKey,
    Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import ParcelStatus
from src.utils.datetime_utils import utc_now


class TrackingHistoryEntry(BaseModel):
    """
    A single status event in a parcel's history.

    Attributes:
        parcel_id: Parcel this entry belongs to
        status: Status the parcel entered
        description: Human-readable description of the event
        location: Free-text location (usually a city)
        latitude, longitude: Optional coordinates of the event
        timestamp: When the event happened
        actor_id: User who caused the event
    """

    __tablename__ = "tracking_history"

    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False)
    status = Column(SQLEnum(ParcelStatus), nullable=False)
    description = Column(Text, nullable=False)
    location = Column(String(255), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    parcel = relationship("Parcel", back_populates="tracking_history")

    __table_args__ = (
        Index("idx_tracking_history_parcel", "parcel_id"),
        Index("idx_tracking_history_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        """String representation of the entry."""
        status = self.status.value if self.status else None
        return f"TrackingHistoryEntry(id={self.id}, parcel_id={self.parcel_id}, status={status})"
