"""Tests for the parcel status state machine.

Tests cover:
- The full transition table (every source/target pair)
- Transition table validation
- Applying transitions: history, actual delivery, actor
- Rejections: disallowed, terminal, unknown status, missing parcel
- Recipient notifications and sink failures
- Courier assignment settlement on DELIVERED / RETURNED / CANCELLED
- Optimistic concurrency between two sessions
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from src.models import (
    CourierAssignment,
    CourierAssignmentStatus,
    Notification,
    NotificationStatus,
    NotificationType,
    Parcel,
    ParcelStatus,
    TrackingHistoryEntry,
    User,
)
from src.services.courier_assignment_service import assign_courier
from src.services import parcel_state_service
from src.services.exceptions import (
    DatabaseError,
    InvalidTransition,
    ParcelNotFound,
    ValidationError,
)
from src.services.parcel_creation_service import create_parcel
from src.services.parcel_query_service import get_tracking_history
from src.services.parcel_state_service import (
    TRANSITIONS,
    allowed_transitions,
    can_transition,
    transition,
    validate_transition_table,
)
from src.utils.datetime_utils import utc_now

S = ParcelStatus

EXPECTED_TRANSITIONS = {
    S.PROCESSING: {S.PAYMENT_PENDING, S.PAYMENT_CONFIRMED},
    S.PAYMENT_PENDING: {S.PAYMENT_CONFIRMED, S.CANCELLED},
    S.PAYMENT_CONFIRMED: {S.PICKED_UP, S.CANCELLED},
    S.PICKED_UP: {S.IN_TRANSIT, S.DELAYED},
    S.IN_TRANSIT: {S.OUT_FOR_DELIVERY, S.DELAYED},
    S.OUT_FOR_DELIVERY: {S.DELIVERED, S.DELAYED, S.RETURNED},
    S.DELAYED: {S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.RETURNED},
    S.DELIVERED: set(),
    S.RETURNED: {S.REFUNDED},
    S.CANCELLED: {S.REFUNDED},
    S.REFUNDED: set(),
}

TO_OUT_FOR_DELIVERY = (S.PAYMENT_CONFIRMED, S.PICKED_UP, S.IN_TRANSIT, S.OUT_FOR_DELIVERY)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def parcel(test_db, customer, address_resolver, payload):
    """A freshly created PAYMENT_PENDING parcel."""
    return create_parcel(customer.id, payload, address_resolver=address_resolver)


@pytest.fixture
def linked_parcel(test_db, customer, recipient_account, address_resolver, payload):
    """A parcel whose recipient email belongs to a registered account."""
    return create_parcel(customer.id, payload, address_resolver=address_resolver)


def walk(parcel_id, statuses, **kwargs):
    result = None
    for status in statuses:
        result = transition(parcel_id, status, **kwargs)
    return result


def reload(test_db, parcel_id):
    session = test_db()
    session.expire_all()
    return session.get(Parcel, parcel_id)


# ============================================================================
# Transition table
# ============================================================================


class TestTransitionTable:
    """The static transition table."""

    def test_table_matches_lifecycle(self):
        assert {k: set(v) for k, v in TRANSITIONS.items()} == EXPECTED_TRANSITIONS

    @pytest.mark.parametrize("source", list(ParcelStatus))
    @pytest.mark.parametrize("target", list(ParcelStatus))
    def test_can_transition_every_pair(self, source, target):
        assert can_transition(source, target) == (target in EXPECTED_TRANSITIONS[source])

    def test_terminal_statuses_have_no_exits(self):
        assert allowed_transitions(S.DELIVERED) == frozenset()
        assert allowed_transitions(S.REFUNDED) == frozenset()

    def test_accepts_string_values(self):
        assert can_transition("PAYMENT_PENDING", "PAYMENT_CONFIRMED")

    def test_shipped_table_is_valid(self):
        validate_transition_table(TRANSITIONS)

    def test_unreachable_status_rejected(self):
        table = dict(TRANSITIONS)
        table[S.RETURNED] = frozenset()
        table[S.OUT_FOR_DELIVERY] = frozenset({S.DELIVERED, S.DELAYED})
        table[S.DELAYED] = frozenset({S.IN_TRANSIT, S.OUT_FOR_DELIVERY})
        with pytest.raises(ValueError, match="unreachable from PROCESSING: RETURNED"):
            validate_transition_table(table)

    def test_terminal_with_exit_rejected(self):
        table = dict(TRANSITIONS)
        table[S.DELIVERED] = frozenset({S.RETURNED})
        with pytest.raises(ValueError, match="terminal status DELIVERED"):
            validate_transition_table(table)

    def test_missing_entry_rejected(self):
        table = dict(TRANSITIONS)
        del table[S.DELAYED]
        with pytest.raises(ValueError, match="no entry for DELAYED"):
            validate_transition_table(table)


# ============================================================================
# Applying transitions
# ============================================================================


class TestTransition:
    """transition() side effects."""

    def test_allowed_transition_updates_status(self, test_db, parcel, customer):
        updated = transition(parcel.id, S.PAYMENT_CONFIRMED, actor=customer.id)

        assert updated.status == S.PAYMENT_CONFIRMED
        stored = reload(test_db, parcel.id)
        assert stored.status == S.PAYMENT_CONFIRMED
        assert stored.updated_by == customer.id

    def test_history_entry_appended(self, test_db, parcel):
        transition(parcel.id, S.PAYMENT_CONFIRMED)

        history = get_tracking_history(parcel.id)
        assert [entry.status for entry in history] == [S.PAYMENT_PENDING, S.PAYMENT_CONFIRMED]
        assert history[-1].description == "Status updated to PAYMENT_CONFIRMED"

    def test_history_location_and_coordinates(self, test_db, parcel):
        walk(parcel.id, (S.PAYMENT_CONFIRMED, S.PICKED_UP))
        transition(
            parcel.id,
            S.IN_TRANSIT,
            description="Left the Nairobi hub",
            location="Nairobi Hub",
            coordinates=(-1.3, 36.9),
        )

        entry = get_tracking_history(parcel.id)[-1]
        assert entry.description == "Left the Nairobi hub"
        assert entry.location == "Nairobi Hub"
        assert (entry.latitude, entry.longitude) == (-1.3, 36.9)

    def test_version_increases(self, test_db, parcel):
        before = reload(test_db, parcel.id).version
        transition(parcel.id, S.PAYMENT_CONFIRMED)
        assert reload(test_db, parcel.id).version > before

    def test_actual_delivery_set_only_on_delivered(self, test_db, parcel):
        walk(parcel.id, TO_OUT_FOR_DELIVERY)
        assert reload(test_db, parcel.id).actual_delivery is None

        transition(parcel.id, S.DELIVERED)
        assert reload(test_db, parcel.id).actual_delivery is not None

    def test_full_return_path(self, test_db, parcel):
        walk(parcel.id, TO_OUT_FOR_DELIVERY + (S.DELAYED, S.RETURNED, S.REFUNDED))

        stored = reload(test_db, parcel.id)
        assert stored.status == S.REFUNDED
        assert stored.actual_delivery is None
        assert len(get_tracking_history(parcel.id)) == 8

    def test_joins_caller_session(self, test_db, parcel, recording_sink):
        session = test_db()
        updated = transition(
            parcel.id, S.PAYMENT_CONFIRMED, session=session, notification_sink=recording_sink
        )
        session.commit()

        assert updated.status == S.PAYMENT_CONFIRMED
        assert recording_sink.received == []


class TestTransitionRejections:
    """Invalid requests leave the parcel untouched."""

    def test_disallowed_transition(self, test_db, parcel, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.raises(InvalidTransition) as exc_info:
                transition(parcel.id, S.DELIVERED)

        assert exc_info.value.current_status == S.PAYMENT_PENDING
        assert exc_info.value.target_status == S.DELIVERED
        assert "transition: invalid_transition" in caplog.text
        assert reload(test_db, parcel.id).status == S.PAYMENT_PENDING
        assert len(get_tracking_history(parcel.id)) == 1

    def test_terminal_status_is_final(self, test_db, parcel):
        walk(parcel.id, TO_OUT_FOR_DELIVERY + (S.DELIVERED,))

        for target in ParcelStatus:
            with pytest.raises(InvalidTransition):
                transition(parcel.id, target)

    def test_same_status_rejected(self, test_db, parcel):
        with pytest.raises(InvalidTransition):
            transition(parcel.id, S.PAYMENT_PENDING)

    def test_unknown_status(self, test_db, parcel):
        with pytest.raises(ValidationError, match="Unknown parcel status: LOST"):
            transition(parcel.id, "LOST")

    def test_missing_parcel(self, test_db):
        with pytest.raises(ParcelNotFound):
            transition(9999, S.PAYMENT_CONFIRMED)

    def test_soft_deleted_parcel(self, test_db, parcel):
        session = test_db()
        session.get(Parcel, parcel.id).deleted_at = utc_now()
        session.commit()

        with pytest.raises(ParcelNotFound):
            transition(parcel.id, S.PAYMENT_CONFIRMED)

    @pytest.mark.parametrize("use_caller_session", [False, True])
    def test_storage_failure_becomes_database_error(
        self, test_db, parcel, monkeypatch, use_caller_session
    ):
        def locked(*args, **kwargs):
            raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))

        monkeypatch.setattr(parcel_state_service, "_notify_recipient", locked)
        session = test_db() if use_caller_session else None

        with pytest.raises(DatabaseError) as exc_info:
            transition(parcel.id, S.PAYMENT_CONFIRMED, session=session)

        assert isinstance(exc_info.value.original_error, OperationalError)
        if session is not None:
            session.rollback()
        assert reload(test_db, parcel.id).status == S.PAYMENT_PENDING
        assert len(get_tracking_history(parcel.id)) == 1


# ============================================================================
# Notifications
# ============================================================================


class TestRecipientNotifications:
    """Recipient e-mails on OUT_FOR_DELIVERY and DELIVERED."""

    def _recipient_notifications(self, test_db, parcel):
        session = test_db()
        return (
            session.query(Notification)
            .filter(Notification.parcel_id == parcel.id, Notification.user_id == parcel.recipient_id)
            .order_by(Notification.id)
            .all()
        )

    def test_out_for_delivery_and_delivered_notify_recipient(
        self, test_db, linked_parcel, recipient_account, recording_sink
    ):
        walk(linked_parcel.id, TO_OUT_FOR_DELIVERY + (S.DELIVERED,), notification_sink=recording_sink)

        notifications = self._recipient_notifications(test_db, linked_parcel)
        assert [n.subject for n in notifications] == [
            "Your parcel is out for delivery",
            "Your parcel has been delivered",
        ]
        assert all(n.type == NotificationType.EMAIL for n in notifications)
        assert all(n.recipient == "otieno@example.com" for n in notifications)
        assert [n.user_id for n in recording_sink.received] == [recipient_account.id] * 2

    def test_other_statuses_do_not_notify(self, test_db, linked_parcel, recording_sink):
        walk(linked_parcel.id, (S.PAYMENT_CONFIRMED, S.PICKED_UP), notification_sink=recording_sink)

        assert self._recipient_notifications(test_db, linked_parcel) == []
        assert recording_sink.received == []

    def test_no_recipient_account_no_notification(self, test_db, parcel, recording_sink):
        assert parcel.recipient_id is None

        walk(parcel.id, TO_OUT_FOR_DELIVERY, notification_sink=recording_sink)

        assert recording_sink.received == []

    def test_failing_sink_does_not_fail_transition(
        self, test_db, linked_parcel, failing_sink, caplog
    ):
        sink = failing_sink
        walk(linked_parcel.id, TO_OUT_FOR_DELIVERY[:-1])

        with caplog.at_level(logging.WARNING):
            updated = transition(linked_parcel.id, S.OUT_FOR_DELIVERY, notification_sink=sink)

        assert updated.status == S.OUT_FOR_DELIVERY
        assert sink.calls == 1
        assert "transition.notify_email: failed" in caplog.text
        (notification,) = self._recipient_notifications(test_db, linked_parcel)
        assert notification.status == NotificationStatus.PENDING


# ============================================================================
# Courier assignment settlement
# ============================================================================


class TestAssignmentSettlement:
    """The ACTIVE courier assignment follows the parcel's fate."""

    @pytest.fixture
    def assigned_parcel(self, test_db, parcel, courier, admin):
        transition(parcel.id, S.PAYMENT_CONFIRMED)
        assign_courier(parcel.id, courier.id, admin.id)
        return parcel

    def _assignment(self, test_db, parcel_id):
        session = test_db()
        session.expire_all()
        return session.query(CourierAssignment).filter_by(parcel_id=parcel_id).one()

    def test_delivered_completes_assignment(self, test_db, assigned_parcel):
        walk(assigned_parcel.id, (S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.DELIVERED))

        assignment = self._assignment(test_db, assigned_parcel.id)
        assert assignment.status == CourierAssignmentStatus.COMPLETED
        assert assignment.completed_at is not None

    def test_returned_cancels_assignment(self, test_db, assigned_parcel):
        walk(assigned_parcel.id, (S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.RETURNED))

        assignment = self._assignment(test_db, assigned_parcel.id)
        assert assignment.status == CourierAssignmentStatus.CANCELLED

    def test_intermediate_statuses_keep_assignment_active(self, test_db, assigned_parcel):
        walk(assigned_parcel.id, (S.IN_TRANSIT, S.DELAYED, S.OUT_FOR_DELIVERY))

        assignment = self._assignment(test_db, assigned_parcel.id)
        assert assignment.status == CourierAssignmentStatus.ACTIVE


# ============================================================================
# Concurrency
# ============================================================================


class TestConcurrentTransitions:
    """Two writers racing on the same parcel."""

    def test_stale_writer_gets_invalid_transition(self, file_db, address_resolver, payload):
        session = file_db()
        sender = User(name="Jane Wanjiku", email="jane@example.com")
        session.add(sender)
        session.commit()
        sender_id = sender.id
        session.close()

        parcel = create_parcel(sender_id, payload, address_resolver=address_resolver)

        # Session A reads the parcel at version 1
        session_a = file_db()
        stale = session_a.get(Parcel, parcel.id)
        assert stale.status == S.PAYMENT_PENDING

        # Session B wins the race
        transition(parcel.id, S.PAYMENT_CONFIRMED)

        # Session A still believes the parcel is PAYMENT_PENDING
        with pytest.raises(InvalidTransition) as exc_info:
            transition(parcel.id, S.CANCELLED, session=session_a)
        session_a.rollback()
        session_a.close()

        assert "modified concurrently" in str(exc_info.value)

        check = file_db()
        stored = check.get(Parcel, parcel.id)
        assert stored.status == S.PAYMENT_CONFIRMED
        statuses = [
            entry.status
            for entry in check.query(TrackingHistoryEntry)
            .filter_by(parcel_id=parcel.id)
            .order_by(TrackingHistoryEntry.id)
        ]
        assert statuses == [S.PAYMENT_PENDING, S.PAYMENT_CONFIRMED]
        check.close()
