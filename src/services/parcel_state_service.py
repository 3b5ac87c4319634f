"""Parcel State Service.

Validates and applies parcel status transitions.

State machine:
    PROCESSING -> PAYMENT_PENDING | PAYMENT_CONFIRMED
    PAYMENT_PENDING -> PAYMENT_CONFIRMED | CANCELLED
    PAYMENT_CONFIRMED -> PICKED_UP | CANCELLED
    PICKED_UP -> IN_TRANSIT | DELAYED
    IN_TRANSIT -> OUT_FOR_DELIVERY | DELAYED
    OUT_FOR_DELIVERY -> DELIVERED | DELAYED | RETURNED
    DELAYED -> IN_TRANSIT | OUT_FOR_DELIVERY | RETURNED
    RETURNED -> REFUNDED
    CANCELLED -> REFUNDED
    DELIVERED, REFUNDED: terminal

Every transition runs in one transaction: status update, tracking history
entry, courier assignment bookkeeping and recipient notifications land
together or not at all. Concurrent writers are detected through the
parcel's version column; the loser gets InvalidTransition.

Session Management Pattern:
- All public functions accept session=None parameter
- If session provided, use it directly
- If session is None, run_atomic() opens a session_scope() transaction
"""

import logging
from collections import deque
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.models.courier_assignment import CourierAssignment
from src.models.enums import CourierAssignmentStatus, NotificationType, ParcelStatus
from src.models.notification import Notification
from src.models.parcel import Parcel
from src.models.tracking_history import TrackingHistoryEntry
from src.services.database import run_atomic
from src.services.exceptions import (
    DatabaseError,
    InvalidTransition,
    ParcelNotFound,
    ValidationError,
)
from src.services.logging_utils import get_service_logger, log_operation, log_step_outcomes
from src.services.notification_service import (
    NotificationSink,
    dispatch_notifications,
    queue_notification,
)
from src.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)

S = ParcelStatus

TRANSITIONS: Dict[ParcelStatus, FrozenSet[ParcelStatus]] = {
    S.PROCESSING: frozenset({S.PAYMENT_PENDING, S.PAYMENT_CONFIRMED}),
    S.PAYMENT_PENDING: frozenset({S.PAYMENT_CONFIRMED, S.CANCELLED}),
    S.PAYMENT_CONFIRMED: frozenset({S.PICKED_UP, S.CANCELLED}),
    S.PICKED_UP: frozenset({S.IN_TRANSIT, S.DELAYED}),
    S.IN_TRANSIT: frozenset({S.OUT_FOR_DELIVERY, S.DELAYED}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.DELAYED, S.RETURNED}),
    S.DELAYED: frozenset({S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.RETURNED}),
    S.DELIVERED: frozenset(),
    S.RETURNED: frozenset({S.REFUNDED}),
    S.CANCELLED: frozenset({S.REFUNDED}),
    S.REFUNDED: frozenset(),
}

INITIAL_STATUS = S.PROCESSING
TERMINAL_STATUSES = frozenset({S.DELIVERED, S.REFUNDED})

# Recipient e-mails sent on entering these statuses: (subject, message)
RECIPIENT_NOTIFICATIONS: Dict[ParcelStatus, Tuple[str, str]] = {
    S.OUT_FOR_DELIVERY: (
        "Your parcel is out for delivery",
        "Your parcel will be delivered today. Please ensure someone is available to receive it.",
    ),
    S.DELIVERED: (
        "Your parcel has been delivered",
        "Your parcel has been successfully delivered. Thank you for using SendIT!",
    ),
}

# What happens to the ACTIVE courier assignment on entering a status
ASSIGNMENT_OUTCOMES: Dict[ParcelStatus, CourierAssignmentStatus] = {
    S.DELIVERED: CourierAssignmentStatus.COMPLETED,
    S.RETURNED: CourierAssignmentStatus.CANCELLED,
    S.CANCELLED: CourierAssignmentStatus.CANCELLED,
}


def validate_transition_table(
    table: Mapping[ParcelStatus, FrozenSet[ParcelStatus]],
    initial: ParcelStatus = INITIAL_STATUS,
    terminal: FrozenSet[ParcelStatus] = TERMINAL_STATUSES,
) -> None:
    """
    Check a transition table for structural errors.

    Raises:
        ValueError: If a status has no entry, a status is unreachable from
            ``initial``, or a terminal status has outgoing transitions
    """
    problems = []

    missing = [status.value for status in ParcelStatus if status not in table]
    if missing:
        problems.append(f"no entry for {', '.join(missing)}")

    for status in terminal:
        if table.get(status):
            problems.append(f"terminal status {status.value} has outgoing transitions")

    seen = {initial}
    queue = deque([initial])
    while queue:
        for target in table.get(queue.popleft(), ()):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    unreachable = [status.value for status in ParcelStatus if status not in seen]
    if unreachable:
        problems.append(f"unreachable from {initial.value}: {', '.join(unreachable)}")

    if problems:
        raise ValueError("Invalid transition table: " + "; ".join(problems))


validate_transition_table(TRANSITIONS)


def allowed_transitions(status: ParcelStatus) -> FrozenSet[ParcelStatus]:
    """Statuses reachable in one step from ``status``."""
    return TRANSITIONS.get(ParcelStatus(status), frozenset())


def can_transition(source: ParcelStatus, target: ParcelStatus) -> bool:
    """True if ``source -> target`` is a legal transition."""
    return ParcelStatus(target) in allowed_transitions(source)


# =============================================================================
# Side effects
# =============================================================================


def _settle_active_assignment(
    parcel: Parcel, outcome: CourierAssignmentStatus, session: Session
) -> Optional[CourierAssignment]:
    """Move the parcel's ACTIVE assignment (if any) to ``outcome``."""
    assignment = (
        session.query(CourierAssignment)
        .filter(
            CourierAssignment.parcel_id == parcel.id,
            CourierAssignment.status == CourierAssignmentStatus.ACTIVE,
        )
        .first()
    )
    if assignment is not None:
        assignment.status = outcome
        assignment.completed_at = utc_now()
    return assignment


def _notify_recipient(
    parcel: Parcel, target: ParcelStatus, session: Session
) -> List[Notification]:
    if target not in RECIPIENT_NOTIFICATIONS or parcel.recipient_id is None:
        return []
    subject, message = RECIPIENT_NOTIFICATIONS[target]
    recipient_email = parcel.recipient.email if parcel.recipient is not None else None
    return [
        queue_notification(
            session,
            user_id=parcel.recipient_id,
            parcel_id=parcel.id,
            notification_type=NotificationType.EMAIL,
            subject=subject,
            message=message,
            recipient=recipient_email,
        )
    ]


# =============================================================================
# Transition
# =============================================================================


def _get_parcel_or_raise(parcel_id: int, session: Session) -> Parcel:
    """Get a live (not soft-deleted) parcel or raise ParcelNotFound.

    Transaction boundary: Inherits session from caller.
    """
    parcel = session.get(Parcel, parcel_id)
    if parcel is None or parcel.deleted_at is not None:
        raise ParcelNotFound(parcel_id)
    return parcel


def _transition_impl(
    parcel_id: int,
    target_status: ParcelStatus,
    description: Optional[str],
    location: Optional[str],
    coordinates: Optional[Tuple[float, float]],
    actor: Optional[int],
    session: Session,
) -> Tuple[Parcel, List[Notification]]:
    """Internal implementation of transition.

    Transaction boundary: Inherits session from caller.
    Multi-step operation within the caller's transaction scope:
        1. Validate the transition against TRANSITIONS
        2. Update status (and actual_delivery on DELIVERED)
        3. Append the tracking history entry
        4. Settle the ACTIVE courier assignment where the status requires it
        5. Queue recipient notifications
        6. Flush; a version mismatch means another writer got there first
    """
    try:
        target = ParcelStatus(target_status)
    except ValueError:
        raise ValidationError([f"Unknown parcel status: {target_status}"])

    parcel = _get_parcel_or_raise(parcel_id, session)
    current = parcel.status

    if not can_transition(current, target):
        log_operation(
            logger,
            operation="transition",
            outcome="invalid_transition",
            level=logging.WARNING,
            parcel_id=parcel_id,
            current_status=current.value,
            target_status=target.value,
        )
        raise InvalidTransition(parcel_id, current, target)

    latitude, longitude = coordinates if coordinates else (None, None)

    # Queries below autoflush, so the version check can trip anywhere in here
    try:
        parcel.status = target
        parcel.updated_by = actor
        if target == S.DELIVERED:
            parcel.actual_delivery = utc_now()

        session.add(
            TrackingHistoryEntry(
                parcel_id=parcel.id,
                status=target,
                description=description or f"Status updated to {target.value}",
                location=location,
                latitude=latitude,
                longitude=longitude,
                actor_id=actor,
            )
        )

        if target in ASSIGNMENT_OUTCOMES:
            _settle_active_assignment(parcel, ASSIGNMENT_OUTCOMES[target], session)

        notifications = _notify_recipient(parcel, target, session)
        session.flush()
    except StaleDataError:
        log_operation(
            logger,
            operation="transition",
            outcome="concurrent_update",
            level=logging.WARNING,
            parcel_id=parcel_id,
            current_status=current.value,
            target_status=target.value,
        )
        raise InvalidTransition(
            parcel_id, current, target, reason="parcel was modified concurrently"
        )

    return parcel, notifications


def transition(
    parcel_id: int,
    target_status: ParcelStatus,
    description: Optional[str] = None,
    location: Optional[str] = None,
    coordinates: Optional[Tuple[float, float]] = None,
    actor: Optional[int] = None,
    session: Session = None,
    notification_sink: Optional[NotificationSink] = None,
) -> Parcel:
    """Move a parcel to ``target_status``.

    Transaction boundary: Multi-step write, all-or-nothing.

    Args:
        parcel_id: Parcel to transition
        target_status: Requested status
        description: History text (default "Status updated to <STATUS>")
        location: Free-text location for the history entry
        coordinates: Optional (latitude, longitude) for the history entry
        actor: User performing the change
        session: Optional session for transaction sharing
        notification_sink: Receives queued notifications after commit
            (only when this call owns the transaction)

    Returns:
        Updated Parcel instance

    Raises:
        ParcelNotFound: If the parcel does not exist or is soft-deleted
        InvalidTransition: If the transition is not allowed, or a concurrent
            writer changed the parcel first
        ValidationError: If target_status is not a known status
        DatabaseError: On any other storage failure
    """
    owns_transaction = session is None

    try:
        parcel, notifications = run_atomic(
            lambda s: _transition_impl(
                parcel_id, target_status, description, location, coordinates, actor, s
            ),
            session,
        )
    except StaleDataError:
        # Version check tripped at commit-time flush
        raise InvalidTransition(
            parcel_id, None, target_status, reason="parcel was modified concurrently"
        )
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to transition parcel {parcel_id}", original_error=e)

    if not owns_transaction:
        return parcel

    log_operation(
        logger,
        operation="transition",
        outcome="success",
        parcel_id=parcel_id,
        status=parcel.status.value,
    )
    log_step_outcomes(
        logger,
        "transition",
        dispatch_notifications(notifications, notification_sink),
        parcel_id=parcel_id,
    )
    return parcel
