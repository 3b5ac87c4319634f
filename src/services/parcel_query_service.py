"""Read-only parcel lookups."""

from typing import List

from sqlalchemy.orm import Session, joinedload

from src.models.parcel import Parcel
from src.models.tracking_history import TrackingHistoryEntry
from src.services.database import session_scope
from src.services.exceptions import ParcelNotFound


def _get_by_tracking_number_impl(tracking_number: str, session: Session) -> Parcel:
    parcel = (
        session.query(Parcel)
        .options(
            joinedload(Parcel.sender_address),
            joinedload(Parcel.recipient_address),
            joinedload(Parcel.dimensions),
        )
        .filter(Parcel.tracking_number == tracking_number, Parcel.deleted_at.is_(None))
        .first()
    )
    if parcel is None:
        raise ParcelNotFound(tracking_number)
    return parcel


def get_parcel_by_tracking_number(tracking_number: str, session: Session = None) -> Parcel:
    """Find a live parcel by its public tracking number.

    Addresses and dimensions are loaded eagerly so the result is usable
    after the session closes.

    Raises:
        ParcelNotFound: If no live parcel has this tracking number
    """
    if session is not None:
        return _get_by_tracking_number_impl(tracking_number, session)

    with session_scope() as session:
        return _get_by_tracking_number_impl(tracking_number, session)


def get_tracking_history(parcel_id: int, session: Session = None) -> List[TrackingHistoryEntry]:
    """History entries for a parcel, oldest first."""

    def _query(session: Session) -> List[TrackingHistoryEntry]:
        return (
            session.query(TrackingHistoryEntry)
            .filter(TrackingHistoryEntry.parcel_id == parcel_id)
            .order_by(TrackingHistoryEntry.timestamp, TrackingHistoryEntry.id)
            .all()
        )

    if session is not None:
        return _query(session)

    with session_scope() as session:
        return _query(session)
