"""
ParcelDraft model for partially completed shipment wizards.

One draft per user. A draft expires a fixed number of hours after its last
write and is deleted when the user's parcel is created. Sweeping expired
drafts is left to an external job; reads simply ignore them.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.sqlite import JSON

from .base import BaseModel


class ParcelDraft(BaseModel):
    """
    Saved wizard state for a user.

    Attributes:
        user_id: Owner (unique: one draft per user)
        step_data: JSON of the wizard steps filled so far
        current_step: Wizard step the user was on
        expires_at: Last write + draft TTL
    """

    __tablename__ = "parcel_drafts"

    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    step_data = Column(JSON, nullable=False)
    current_step = Column(Integer, nullable=False, default=1)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_parcel_draft_expires", "expires_at"),)

    def __repr__(self) -> str:
        """String representation of the draft."""
        return f"ParcelDraft(id={self.id}, user_id={self.user_id}, step={self.current_step})"
