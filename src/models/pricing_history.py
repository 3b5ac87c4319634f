"""
PricingHistory model: immutable snapshots of computed price breakdowns.

Each row records the breakdown produced at one stage of a parcel's life,
tagged by that stage (e.g. "final_calculation").
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Index
from sqlalchemy.dialects.sqlite import JSON

from .base import BaseModel


class PricingHistory(BaseModel):
    """
    A frozen PriceBreakdown for a parcel.

    Attributes:
        parcel_id: Parcel the snapshot belongs to
        step: Computation stage that produced the breakdown
        pricing: Breakdown as JSON
    """

    __tablename__ = "pricing_history"

    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False)
    step = Column(String(50), nullable=False)
    pricing = Column(JSON, nullable=False)

    __table_args__ = (Index("idx_pricing_history_parcel", "parcel_id"),)

    def __repr__(self) -> str:
        """String representation."""
        return f"PricingHistory(id={self.id}, parcel_id={self.parcel_id}, step='{self.step}')"
