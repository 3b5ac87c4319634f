"""Tracking number generation.

Tracking numbers look like ``ST-1234567842``: the prefix, the last eight
digits of the current epoch time in milliseconds, and two random digits.

TrackingNumberGenerator checks each candidate against a uniqueness oracle
and retries on collision. The oracle check is an optimization; the unique
constraint on parcels.tracking_number remains the final guarantee, and
parcel_creation_service turns a violation of it into
TrackingNumberConflict.
"""

import logging
import random
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.models.parcel import Parcel
from src.services.exceptions import GenerationExhausted
from src.services.logging_utils import get_service_logger, log_operation
from src.utils.constants import TRACKING_NUMBER_MAX_ATTEMPTS, TRACKING_NUMBER_PREFIX

logger = get_service_logger(__name__)


def tracking_number_exists(value: str, session: Session) -> bool:
    """True if a parcel (deleted or not) already uses ``value``."""
    return (
        session.query(Parcel.id).filter(Parcel.tracking_number == value).first() is not None
    )


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class TrackingNumberGenerator:
    """
    Collision-checked tracking number generator.

    Args:
        exists: Uniqueness oracle; returns True if a candidate is taken
        clock: Returns epoch milliseconds (defaults to the system clock)
        rng: random.Random-like object used for the two random digits
        max_attempts: Candidates tried before giving up

    Example:
        >>> generator = TrackingNumberGenerator(lambda tn: tracking_number_exists(tn, session))
        >>> generator.generate()
        'ST-3345678917'
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        max_attempts: int = TRACKING_NUMBER_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._exists = exists
        self._clock = clock or _epoch_millis
        self._rng = rng or random.Random()
        self.max_attempts = max_attempts

    def candidate(self) -> str:
        """Build one candidate without checking it."""
        timestamp = str(self._clock())[-8:].zfill(8)
        suffix = f"{self._rng.randint(0, 99):02d}"
        return f"{TRACKING_NUMBER_PREFIX}{timestamp}{suffix}"

    def generate(self) -> str:
        """
        Return a tracking number the oracle reports as unused.

        Raises:
            GenerationExhausted: If every one of max_attempts candidates was taken
        """
        for attempt in range(1, self.max_attempts + 1):
            value = self.candidate()
            if not self._exists(value):
                if attempt > 1:
                    logger.debug(f"Tracking number {value} found on attempt {attempt}")
                return value

        log_operation(
            logger,
            operation="generate_tracking_number",
            outcome="exhausted",
            level=logging.WARNING,
            attempts=self.max_attempts,
        )
        raise GenerationExhausted(self.max_attempts)


def generate_tracking_number(session: Session, **kwargs) -> str:
    """Generate a tracking number unused in ``session``'s database."""
    generator = TrackingNumberGenerator(lambda value: tracking_number_exists(value, session), **kwargs)
    return generator.generate()
