"""
SavedRecipient model: a user's address book of past recipients.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from src.utils.datetime_utils import utc_now


class SavedRecipient(BaseModel):
    """
    A recipient remembered for reuse in later shipments.

    Keyed by (user_id, email, phone); saving the same recipient again
    refreshes name, company, address and last_used.
    """

    __tablename__ = "saved_recipients"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    company = Column(String(200), nullable=True)
    address_id = Column(
        Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True
    )
    last_used = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    address = relationship("Address")

    __table_args__ = (
        UniqueConstraint("user_id", "email", "phone", name="uq_saved_recipient_user_email_phone"),
        Index("idx_saved_recipient_user", "user_id"),
    )

    def __repr__(self) -> str:
        """String representation of saved recipient."""
        return f"SavedRecipient(id={self.id}, user_id={self.user_id}, name='{self.name}')"
