"""Notification outbox and sink hand-off.

Parcel operations never talk to a delivery channel directly. Inside their
transaction they write PENDING Notification rows with queue_notification();
after the transaction commits the orchestrator passes those rows to a
NotificationSink with dispatch_notifications(). A failing sink is logged
and ignored: the rows are already committed and stay PENDING for the
external delivery worker.

Callers that pass their own session own the commit, so no dispatch happens
on their behalf; the committed outbox rows are the hand-off.
"""

from typing import Iterable, List, Optional, Protocol

from sqlalchemy.orm import Session

from src.models.enums import NotificationStatus, NotificationType
from src.models.notification import Notification
from src.services.logging_utils import StepOutcome, get_service_logger, log_operation

logger = get_service_logger(__name__)


class NotificationSink(Protocol):
    """Anything that accepts committed notifications for delivery."""

    def enqueue(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    """Sink that only logs; used by the command line and as a default."""

    def enqueue(self, notification: Notification) -> None:
        log_operation(
            logger,
            operation="enqueue_notification",
            outcome="queued",
            notification_id=notification.id,
            notification_type=notification.type.value,
            user_id=notification.user_id,
            parcel_id=notification.parcel_id,
        )


def queue_notification(
    session: Session,
    *,
    user_id: int,
    notification_type: NotificationType,
    subject: str,
    message: str,
    parcel_id: Optional[int] = None,
    recipient: Optional[str] = None,
) -> Notification:
    """
    Write a PENDING notification in the caller's transaction.

    Transaction boundary: Inherits session from caller.

    Args:
        session: Session of the surrounding operation
        user_id: Addressee account
        notification_type: EMAIL, SMS or PUSH
        subject: Short subject line
        message: Body text
        parcel_id: Parcel the message is about
        recipient: Channel address (email or phone), if known

    Returns:
        The flushed Notification row
    """
    notification = Notification(
        user_id=user_id,
        parcel_id=parcel_id,
        type=notification_type,
        status=NotificationStatus.PENDING,
        subject=subject,
        message=message,
        recipient=recipient,
    )
    session.add(notification)
    session.flush()
    return notification


def dispatch_notifications(
    notifications: Iterable[Notification],
    sink: Optional[NotificationSink],
) -> List[StepOutcome]:
    """
    Hand committed notifications to ``sink``.

    Call only after the transaction that wrote them has committed. Sink
    errors of any kind are turned into failed StepOutcomes.

    Returns:
        One StepOutcome per notification (empty when there is no sink)
    """
    if sink is None:
        return []

    outcomes = []
    for notification in notifications:
        step = f"notify_{notification.type.value.lower()}"
        try:
            sink.enqueue(notification)
        except Exception as e:  # sink failures never propagate
            outcomes.append(StepOutcome.failed(step, e))
        else:
            outcomes.append(StepOutcome.ok(step))
    return outcomes
