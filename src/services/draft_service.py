"""Parcel draft service.

Stores the partially completed shipment wizard, one draft per user. Each
save resets the expiry to SENDIT_DRAFT_TTL_HOURS (default 24) from now;
expired drafts are invisible to get_draft() but are only removed by
delete_draft() or an external sweep.

Session Management Pattern:
- All public functions accept session=None parameter
- If session provided, use it directly
- If session is None, create a new session via session_scope()
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from src.models.parcel_draft import ParcelDraft
from src.services.database import run_atomic, session_scope
from src.services.exceptions import ValidationError
from src.services.logging_utils import get_service_logger
from src.utils.config import get_config
from src.utils.datetime_utils import as_utc, utc_in, utc_now

logger = get_service_logger(__name__)


def _save_draft_impl(
    user_id: int, step_data: Dict[str, Any], current_step: int, session: Session
) -> ParcelDraft:
    if not isinstance(step_data, dict):
        raise ValidationError(["step_data must be an object"])
    if current_step < 1:
        raise ValidationError(["current_step must be at least 1"])

    expires_at = utc_in(get_config().draft_ttl_hours)
    draft = session.query(ParcelDraft).filter(ParcelDraft.user_id == user_id).first()
    if draft is None:
        draft = ParcelDraft(user_id=user_id)
        session.add(draft)

    draft.step_data = dict(step_data)
    draft.current_step = current_step
    draft.expires_at = expires_at
    session.flush()

    logger.info(f"Draft saved for user {user_id} at step {current_step}")
    return draft


def save_draft(
    user_id: int,
    step_data: Dict[str, Any],
    current_step: int,
    session: Session = None,
) -> ParcelDraft:
    """Create or replace the user's draft and restart its expiry clock.

    Transaction boundary: Single-step write (upsert).

    Args:
        user_id: Draft owner
        step_data: Wizard data collected so far
        current_step: Wizard step the user is on (1-based)
        session: Optional session for transaction sharing

    Returns:
        The saved ParcelDraft

    Raises:
        ValidationError: If step_data is not a dict or current_step < 1
    """
    if session is not None:
        return _save_draft_impl(user_id, step_data, current_step, session)

    with session_scope() as session:
        return _save_draft_impl(user_id, step_data, current_step, session)


def _get_draft_impl(user_id: int, session: Session) -> Optional[ParcelDraft]:
    draft = session.query(ParcelDraft).filter(ParcelDraft.user_id == user_id).first()
    if draft is None or as_utc(draft.expires_at) <= utc_now():
        return None
    return draft


def get_draft(user_id: int, session: Session = None) -> Optional[ParcelDraft]:
    """Return the user's unexpired draft, or None.

    Transaction boundary: Read-only operation.
    """
    if session is not None:
        return _get_draft_impl(user_id, session)

    with session_scope() as session:
        return _get_draft_impl(user_id, session)


def _delete_draft_impl(user_id: int, session: Session) -> bool:
    deleted = (
        session.query(ParcelDraft)
        .filter(ParcelDraft.user_id == user_id)
        .delete(synchronize_session="fetch")
    )
    return deleted > 0


def delete_draft(user_id: int, session: Session = None) -> bool:
    """Delete the user's draft, expired or not.

    Transaction boundary: Single-step write. Parcel creation calls this
    inside its own transaction.

    Returns:
        True if a draft was deleted
    """
    return run_atomic(lambda s: _delete_draft_impl(user_id, s), session)
