"""Service layer exception classes for the SendIT parcel core.

This module defines every exception the parcel core lets cross its
boundary. Storage-layer errors (SQLAlchemyError and friends) are always
translated into one of these before they leave a service function.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError            - malformed input, rejected before any write
    ├── InvalidTransition          - status change not allowed from current status
    ├── AddressUnresolvable        - address resolver could not place an address
    ├── NotFoundError
    │   └── ParcelNotFound
    ├── ConflictError
    │   ├── GenerationExhausted    - tracking number retries used up
    │   ├── TrackingNumberConflict - storage uniqueness backstop tripped
    │   └── InvalidAssignment      - courier or parcel not eligible
    └── DatabaseError              - wrapped storage failure
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    Args:
        message: Human-readable description
        correlation_id: Optional request/operation id for log correlation
        **context: Structured details (entity ids, reasons) for callers and logs

    Attributes:
        http_status_code: Status hint for the transport layer translating errors
    """

    http_status_code = 500

    def __init__(self, message: str, correlation_id: Optional[str] = None, **context: Any):
        self.message = message
        self.correlation_id = correlation_id
        self.context: Dict[str, Any] = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for logging or transport."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "correlation_id": self.correlation_id,
            "http_status_code": self.http_status_code,
            "context": self.context,
        }


class ValidationError(ServiceError):
    """Raised when input validation fails.

    Args:
        errors: List of reason strings, one per failed check

    Example:
        >>> raise ValidationError(["weight must be positive", "Unknown unit: st"])
        ValidationError: Validation failed: weight must be positive; Unknown unit: st
    """

    http_status_code = 422

    def __init__(self, errors: list, **context: Any):
        self.errors = list(errors)
        super().__init__(f"Validation failed: {'; '.join(self.errors)}", **context)


class InvalidTransition(ServiceError):
    """Raised when a parcel cannot move from its current status to the target.

    Args:
        parcel_id: Parcel being transitioned
        current_status: Status the parcel is in
        target_status: Requested status
        reason: Optional extra detail (e.g. concurrent update)
    """

    http_status_code = 409

    def __init__(self, parcel_id, current_status, target_status, reason: Optional[str] = None):
        self.parcel_id = parcel_id
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        message = f"Invalid status transition from {current} to {target} for parcel {parcel_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            parcel_id=parcel_id,
            current_status=current,
            target_status=target,
        )


class AddressUnresolvable(ServiceError):
    """Raised when an address cannot be geocoded or stored."""

    http_status_code = 422

    def __init__(self, address_summary: str, reason: str = "no geocoding match"):
        self.address_summary = address_summary
        self.reason = reason
        super().__init__(
            f"Address could not be resolved ({reason}): {address_summary}",
            address=address_summary,
        )


class NotFoundError(ServiceError):
    """Base for missing-entity errors."""

    http_status_code = 404


class ParcelNotFound(NotFoundError):
    """Raised when a parcel cannot be found by id or tracking number.

    Example:
        >>> raise ParcelNotFound(42)
        ParcelNotFound: Parcel 42 not found
    """

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"Parcel {identifier} not found", parcel=identifier)


class ConflictError(ServiceError):
    """Base for requests that conflict with current state."""

    http_status_code = 409


class GenerationExhausted(ConflictError):
    """Raised when no unused tracking number was found within the retry budget.

    Collisions this persistent point at a clock or RNG problem rather than
    ordinary contention.
    """

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Unable to generate unique tracking number after {attempts} attempts",
            attempts=attempts,
        )


class TrackingNumberConflict(ConflictError):
    """Raised when the storage uniqueness constraint rejects a tracking number."""

    def __init__(self, tracking_number: str):
        self.tracking_number = tracking_number
        super().__init__(
            f"Tracking number {tracking_number} is already in use",
            tracking_number=tracking_number,
        )


class InvalidAssignment(ConflictError):
    """Raised when a courier cannot be assigned to a parcel.

    Args:
        reason: One of "courier_ineligible", "parcel_ineligible",
            "active_assignment_exists"
        detail: Human-readable explanation
    """

    COURIER_INELIGIBLE = "courier_ineligible"
    PARCEL_INELIGIBLE = "parcel_ineligible"
    ACTIVE_ASSIGNMENT_EXISTS = "active_assignment_exists"

    def __init__(self, reason: str, detail: str, **context: Any):
        self.reason = reason
        self.detail = detail
        super().__init__(f"Invalid assignment ({reason}): {detail}", reason=reason, **context)


class DatabaseError(ServiceError):
    """Raised when a database operation fails.

    Args:
        message: What the service was doing
        original_error: The storage exception, kept for logging only
    """

    http_status_code = 500

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
