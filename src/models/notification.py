"""
Notification model: the outbox of messages produced by parcel operations.

Rows are written as PENDING inside the same transaction as the change that
caused them. Delivery is done by an external worker (or the configured
notification sink after commit) and never affects the parcel operation.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
    Enum as SQLEnum,
)

from .base import BaseModel
from .enums import NotificationStatus, NotificationType
from src.utils.datetime_utils import utc_now


class Notification(BaseModel):
    """
    A queued message to a user about a parcel.

    Attributes:
        user_id: Addressee account
        parcel_id: Parcel the message is about
        type: EMAIL, SMS or PUSH
        status: PENDING until a sink reports SENT or FAILED
        subject, message: Content
        recipient: Channel address (email or phone), if known
        queued_at: When the message was queued
    """

    __tablename__ = "notifications"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    status = Column(
        SQLEnum(NotificationStatus), nullable=False, default=NotificationStatus.PENDING
    )
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    recipient = Column(String(255), nullable=True)
    queued_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_notification_user", "user_id"),
        Index("idx_notification_status", "status"),
    )

    def __repr__(self) -> str:
        """String representation of the notification."""
        return f"Notification(id={self.id}, user_id={self.user_id}, subject='{self.subject}')"
