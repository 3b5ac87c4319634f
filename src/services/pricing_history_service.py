"""Pricing history snapshots.

A PricingHistory row freezes one PriceBreakdown as JSON, tagged with the
stage that produced it. Parcel creation writes the "final_calculation"
snapshot; rows are never updated.
"""

from typing import List

from sqlalchemy.orm import Session

from src.models.pricing_history import PricingHistory
from src.services.database import run_atomic, session_scope
from src.services.pricing_engine import PriceBreakdown


def _save_pricing_history_impl(
    parcel_id: int, step: str, breakdown: PriceBreakdown, session: Session
) -> PricingHistory:
    record = PricingHistory(parcel_id=parcel_id, step=step, pricing=breakdown.to_dict())
    session.add(record)
    session.flush()
    return record


def save_pricing_history(
    parcel_id: int, step: str, breakdown: PriceBreakdown, session: Session = None
) -> PricingHistory:
    """Store a snapshot of ``breakdown`` for a parcel.

    Transaction boundary: Single-step write.

    Args:
        parcel_id: Parcel the price belongs to
        step: Stage tag, e.g. "final_calculation"
        breakdown: Computed price
        session: Optional session for transaction sharing
    """
    return run_atomic(
        lambda s: _save_pricing_history_impl(parcel_id, step, breakdown, s), session
    )


def get_pricing_history(parcel_id: int, session: Session = None) -> List[PricingHistory]:
    """Snapshots for a parcel in the order they were written."""

    def _query(session: Session) -> List[PricingHistory]:
        return (
            session.query(PricingHistory)
            .filter(PricingHistory.parcel_id == parcel_id)
            .order_by(PricingHistory.id)
            .all()
        )

    if session is not None:
        return _query(session)

    with session_scope() as session:
        return _query(session)
