"""Tests for parcel lookups, saved recipients and pricing history."""

import pytest

from src.models import SavedRecipient
from src.services.exceptions import ParcelNotFound
from src.services.parcel_creation_service import create_parcel
from src.services.parcel_query_service import get_parcel_by_tracking_number, get_tracking_history
from src.services.pricing_history_service import get_pricing_history
from src.services.recipient_book_service import get_saved_recipients, upsert_saved_recipient
from src.utils.datetime_utils import utc_now


class TestParcelLookup:
    def test_by_tracking_number(self, test_db, customer, address_resolver, payload):
        parcel = create_parcel(customer.id, payload, address_resolver=address_resolver)

        found = get_parcel_by_tracking_number(parcel.tracking_number)

        assert found.id == parcel.id
        assert found.sender_address.city == "Nairobi"
        assert found.recipient_address.area == "Westlands"
        assert found.dimensions.length == 30

    def test_unknown_tracking_number(self, test_db):
        with pytest.raises(ParcelNotFound, match="ST-0000000000"):
            get_parcel_by_tracking_number("ST-0000000000")

    def test_soft_deleted_parcel_hidden(self, test_db, customer, address_resolver, payload):
        from src.models import Parcel

        parcel = create_parcel(customer.id, payload, address_resolver=address_resolver)
        session = test_db()
        session.get(Parcel, parcel.id).deleted_at = utc_now()
        session.commit()

        with pytest.raises(ParcelNotFound):
            get_parcel_by_tracking_number(parcel.tracking_number)

    def test_history_and_pricing_snapshot(self, test_db, customer, address_resolver, payload):
        parcel = create_parcel(customer.id, payload, address_resolver=address_resolver)

        history = get_tracking_history(parcel.id)
        snapshots = get_pricing_history(parcel.id)

        assert [entry.status.value for entry in history] == ["PAYMENT_PENDING"]
        assert len(snapshots) == 1
        assert snapshots[0].step == "final_calculation"
        assert snapshots[0].pricing["total"] == 435.0


class TestSavedRecipients:
    """Tests for the recipient address book."""

    RECIPIENT = {"name": "Otieno Odhiambo", "email": "otieno@example.com", "phone": "+254700000002"}

    def test_insert(self, test_db, customer):
        session = test_db()
        entry = upsert_saved_recipient(customer.id, self.RECIPIENT, None, session)
        session.commit()

        assert entry.id is not None
        assert entry.last_used is not None
        assert [r.name for r in get_saved_recipients(customer.id)] == ["Otieno Odhiambo"]

    def test_same_key_refreshes(self, test_db, customer):
        session = test_db()
        first = upsert_saved_recipient(customer.id, self.RECIPIENT, None, session)
        second = upsert_saved_recipient(
            customer.id, {**self.RECIPIENT, "name": "O. Odhiambo", "company": "Acme"}, None, session
        )
        session.commit()

        assert first.id == second.id
        assert session.query(SavedRecipient).count() == 1
        assert second.name == "O. Odhiambo"
        assert second.company == "Acme"

    def test_different_phone_is_new_entry(self, test_db, customer):
        session = test_db()
        upsert_saved_recipient(customer.id, self.RECIPIENT, None, session)
        upsert_saved_recipient(customer.id, {**self.RECIPIENT, "phone": "+254711111111"}, None, session)
        session.commit()

        assert len(get_saved_recipients(customer.id)) == 2

    def test_book_is_per_user(self, test_db, customer, recipient_account):
        session = test_db()
        upsert_saved_recipient(customer.id, self.RECIPIENT, None, session)
        session.commit()

        assert get_saved_recipients(recipient_account.id) == []
