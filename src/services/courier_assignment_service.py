"""Courier Assignment Service.

Hands a paid parcel to a courier in one transaction: the parcel moves to
PICKED_UP, an ACTIVE CourierAssignment is recorded, a tracking history
entry is appended and the courier and sender are notified.

Eligibility is checked inside the same transaction that writes:
- courier: exists, role COURIER, active, not soft-deleted
- parcel: exists, not soft-deleted, status PAYMENT_CONFIRMED or PROCESSING
- parcel has no ACTIVE assignment (also guaranteed by a partial unique index)

Session Management Pattern:
- All public functions accept session=None parameter
- If session provided, use it directly
- If session is None, run_atomic() opens a session_scope() transaction
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.models.courier_assignment import CourierAssignment
from src.models.enums import (
    CourierAssignmentStatus,
    NotificationType,
    ParcelStatus,
    UserRole,
)
from src.models.notification import Notification
from src.models.parcel import Parcel
from src.models.tracking_history import TrackingHistoryEntry
from src.models.user import User
from src.services.database import run_atomic
from src.services.exceptions import DatabaseError, InvalidAssignment
from src.services.logging_utils import get_service_logger, log_operation, log_step_outcomes
from src.services.notification_service import (
    NotificationSink,
    dispatch_notifications,
    queue_notification,
)
from src.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)

ASSIGNABLE_STATUSES = frozenset({ParcelStatus.PAYMENT_CONFIRMED, ParcelStatus.PROCESSING})


def _get_eligible_courier(courier_id: int, session: Session) -> User:
    courier = session.get(User, courier_id)
    if courier is None:
        detail = f"Courier {courier_id} not found"
    elif courier.role != UserRole.COURIER:
        detail = f"User {courier_id} is not a courier"
    elif not courier.is_active or courier.deleted_at is not None:
        detail = f"Courier {courier_id} is inactive"
    else:
        return courier
    raise InvalidAssignment(InvalidAssignment.COURIER_INELIGIBLE, detail, courier_id=courier_id)


def _get_eligible_parcel(parcel_id: int, session: Session) -> Parcel:
    parcel = session.get(Parcel, parcel_id)
    if parcel is None or parcel.deleted_at is not None:
        detail = f"Parcel {parcel_id} not found"
    elif parcel.status not in ASSIGNABLE_STATUSES:
        detail = f"Parcel {parcel_id} is {parcel.status.value}, not ready for assignment"
    else:
        return parcel
    raise InvalidAssignment(InvalidAssignment.PARCEL_INELIGIBLE, detail, parcel_id=parcel_id)


def get_active_assignment(parcel_id: int, session: Session) -> Optional[CourierAssignment]:
    """The parcel's ACTIVE assignment, if any.

    Transaction boundary: Inherits session from caller.
    """
    return (
        session.query(CourierAssignment)
        .filter(
            CourierAssignment.parcel_id == parcel_id,
            CourierAssignment.status == CourierAssignmentStatus.ACTIVE,
        )
        .first()
    )


def _append_instructions(existing: Optional[str], instructions: Optional[str]) -> Optional[str]:
    if not instructions:
        return existing
    return f"{existing or ''}\nAdmin Note: {instructions}".strip()


def _assign_courier_impl(
    parcel_id: int,
    courier_id: int,
    admin_id: int,
    instructions: Optional[str],
    session: Session,
) -> Tuple[Parcel, List[Notification]]:
    """Internal implementation of assign_courier.

    Transaction boundary: Inherits session from caller.
    Multi-step operation within the caller's transaction scope:
        1. Check courier and parcel eligibility
        2. Re-check for an ACTIVE assignment
        3. Update the parcel (status, instructions); version-checked
        4. Insert the ACTIVE CourierAssignment
        5. Append the tracking history entry
        6. Queue courier and sender notifications
    """
    courier = _get_eligible_courier(courier_id, session)
    parcel = _get_eligible_parcel(parcel_id, session)

    if get_active_assignment(parcel_id, session) is not None:
        raise InvalidAssignment(
            InvalidAssignment.ACTIVE_ASSIGNMENT_EXISTS,
            f"Parcel {parcel_id} already has an active courier",
            parcel_id=parcel_id,
        )

    parcel.status = ParcelStatus.PICKED_UP
    parcel.updated_by = admin_id
    parcel.pickup_instructions = _append_instructions(parcel.pickup_instructions, instructions)
    try:
        session.flush()
    except StaleDataError:
        raise InvalidAssignment(
            InvalidAssignment.PARCEL_INELIGIBLE,
            f"Parcel {parcel_id} was modified concurrently",
            parcel_id=parcel_id,
        )

    session.add(
        CourierAssignment(
            parcel_id=parcel.id,
            courier_id=courier.id,
            assigned_by=admin_id,
            assigned_at=utc_now(),
            status=CourierAssignmentStatus.ACTIVE,
        )
    )
    try:
        session.flush()
    except IntegrityError as e:
        raise InvalidAssignment(
            InvalidAssignment.ACTIVE_ASSIGNMENT_EXISTS,
            f"Parcel {parcel_id} already has an active courier",
            parcel_id=parcel_id,
        ) from e

    sender_address = parcel.sender_address
    session.add(
        TrackingHistoryEntry(
            parcel_id=parcel.id,
            status=ParcelStatus.PICKED_UP,
            description=f"Assigned to courier {courier.name}",
            location=sender_address.city if sender_address is not None else None,
            actor_id=admin_id,
        )
    )

    pickup_area = ", ".join(
        part for part in (sender_address.area, sender_address.city) if part
    ) if sender_address is not None else ""

    notifications = [
        queue_notification(
            session,
            user_id=courier.id,
            parcel_id=parcel.id,
            notification_type=NotificationType.PUSH,
            subject="New Delivery Assignment",
            message=(
                f"You have been assigned parcel {parcel.tracking_number}. "
                f"Pickup from {pickup_area}."
            ),
            recipient=courier.email,
        )
    ]

    sender = parcel.sender
    if sender is not None and sender.email:
        notifications.append(
            queue_notification(
                session,
                user_id=sender.id,
                parcel_id=parcel.id,
                notification_type=NotificationType.EMAIL,
                subject="Your parcel is ready for pickup",
                message=(
                    f"Your parcel {parcel.tracking_number} has been assigned to a courier "
                    f"and will be picked up soon."
                ),
                recipient=sender.email,
            )
        )

    return parcel, notifications


def assign_courier(
    parcel_id: int,
    courier_id: int,
    admin_id: int,
    instructions: Optional[str] = None,
    session: Session = None,
    notification_sink: Optional[NotificationSink] = None,
) -> Parcel:
    """Assign a courier to a parcel.

    Transaction boundary: Multi-step write, all-or-nothing.

    Args:
        parcel_id: Parcel to assign
        courier_id: Courier user
        admin_id: Admin making the assignment
        instructions: Optional note appended to the pickup instructions
        session: Optional session for transaction sharing
        notification_sink: Receives queued notifications after commit
            (only when this call owns the transaction)

    Returns:
        Updated Parcel (status PICKED_UP)

    Raises:
        InvalidAssignment: reason "courier_ineligible", "parcel_ineligible"
            or "active_assignment_exists"; nothing is written
        DatabaseError: On any other storage failure
    """
    owns_transaction = session is None

    try:
        parcel, notifications = run_atomic(
            lambda s: _assign_courier_impl(parcel_id, courier_id, admin_id, instructions, s),
            session,
        )
    except InvalidAssignment as e:
        log_operation(
            logger,
            operation="assign_courier",
            outcome=e.reason,
            level=logging.WARNING,
            parcel_id=parcel_id,
            courier_id=courier_id,
        )
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to assign courier to parcel {parcel_id}", original_error=e)

    if not owns_transaction:
        return parcel

    log_operation(
        logger,
        operation="assign_courier",
        outcome="success",
        parcel_id=parcel_id,
        courier_id=courier_id,
        admin_id=admin_id,
    )
    log_step_outcomes(
        logger,
        "assign_courier",
        dispatch_notifications(notifications, notification_sink),
        parcel_id=parcel_id,
    )
    return parcel
