"""Saved recipient (address book) service.

Users can ask parcel creation to remember the recipient. Entries are keyed
by (user_id, email, phone); saving an existing key refreshes the name,
company, address and last_used time.
"""

from typing import List, Mapping, Optional

from sqlalchemy.orm import Session

from src.models.saved_recipient import SavedRecipient
from src.services.database import session_scope
from src.services.logging_utils import get_service_logger
from src.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)


def upsert_saved_recipient(
    user_id: int,
    recipient: Mapping,
    address_id: Optional[int],
    session: Session,
) -> SavedRecipient:
    """Insert or refresh a saved recipient.

    Transaction boundary: Inherits session from caller. Parcel creation runs
    this inside a savepoint so a failure here cannot abort the parcel.

    Args:
        user_id: Address book owner
        recipient: Mapping with name, email, phone and optional company
        address_id: Recipient address to remember
        session: Session of the surrounding transaction

    Returns:
        The saved entry
    """
    entry = (
        session.query(SavedRecipient)
        .filter(
            SavedRecipient.user_id == user_id,
            SavedRecipient.email == recipient.get("email"),
            SavedRecipient.phone == recipient.get("phone"),
        )
        .first()
    )
    if entry is None:
        entry = SavedRecipient(
            user_id=user_id,
            email=recipient.get("email"),
            phone=recipient.get("phone"),
        )
        session.add(entry)

    entry.name = recipient.get("name")
    entry.company = recipient.get("company")
    entry.address_id = address_id
    entry.last_used = utc_now()
    session.flush()

    logger.debug(f"Saved recipient {entry.id} refreshed for user {user_id}")
    return entry


def get_saved_recipients(user_id: int, session: Session = None) -> List[SavedRecipient]:
    """The user's saved recipients, most recently used first."""

    def _query(session: Session) -> List[SavedRecipient]:
        return (
            session.query(SavedRecipient)
            .filter(SavedRecipient.user_id == user_id)
            .order_by(SavedRecipient.last_used.desc(), SavedRecipient.id.desc())
            .all()
        )

    if session is not None:
        return _query(session)

    with session_scope() as session:
        return _query(session)
