"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling a
consistent log format across parcel creation, status transitions and
courier assignment.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="create_parcel",
        outcome="success",
        parcel_id=123,
        tracking_number="ST-1234567801",
    )

Non-critical steps (saved recipient upsert, notification hand-off) report a
StepOutcome instead of raising; the caller logs the collected outcomes once
the main transaction has committed with log_step_outcomes().
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance under the 'sendit.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'sendit.services.parcel_creation_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"sendit.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging
    handlers, and the message itself stays a short "operation: outcome".

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "create_parcel", "transition")
        outcome: Outcome description (e.g., "success", "invalid_transition")
        level: Log level (default: INFO)
        **context: Additional context fields (entity ids, error details, etc.)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)


@dataclass(frozen=True)
class StepOutcome:
    """Result of a step whose failure must not fail the parent operation."""

    step: str
    succeeded: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls, step: str) -> "StepOutcome":
        return cls(step=step, succeeded=True)

    @classmethod
    def failed(cls, step: str, error: BaseException) -> "StepOutcome":
        return cls(step=step, succeeded=False, error=f"{type(error).__name__}: {error}")


def log_step_outcomes(
    logger: logging.Logger,
    operation: str,
    outcomes: Iterable[StepOutcome],
    **context: Any,
) -> None:
    """
    Log the non-critical step outcomes of a committed operation.

    Failures are logged at WARNING, successes at DEBUG.
    """
    for outcome in outcomes:
        if outcome.succeeded:
            log_operation(
                logger,
                operation=f"{operation}.{outcome.step}",
                outcome="success",
                level=logging.DEBUG,
                **context,
            )
        else:
            log_operation(
                logger,
                operation=f"{operation}.{outcome.step}",
                outcome="failed",
                level=logging.WARNING,
                error=outcome.error,
                **context,
            )
