"""Services package - Business logic layer for the SendIT parcel core.

This package contains all service modules that provide business logic
and database operations for parcels.

Architecture:
- Services: Stateless functions organized by domain (pricing, lifecycle, creation, assignment)
- Transactions: Managed via session_scope() / run_atomic()
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- pricing_config: Immutable tariff tables
- pricing_engine: Deterministic price breakdowns
- tracking_number_service: Unique tracking number generation
- parcel_state_service: Parcel status state machine
- parcel_creation_service: Atomic parcel creation
- courier_assignment_service: Atomic courier assignment
- address_service: Address resolution and geocoding
- draft_service, recipient_book_service, pricing_history_service,
  parcel_query_service, notification_service: Supporting records

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Structured service logging
- unit_converter: Weight and length conversion
"""

from . import (
    database,
    unit_converter,
    pricing_config,
    pricing_engine,
    tracking_number_service,
    notification_service,
    parcel_state_service,
    address_service,
    draft_service,
    recipient_book_service,
    pricing_history_service,
    parcel_query_service,
    parcel_creation_service,
    courier_assignment_service,
)

from .exceptions import (
    ServiceError,
    ValidationError,
    InvalidTransition,
    AddressUnresolvable,
    NotFoundError,
    ParcelNotFound,
    ConflictError,
    GenerationExhausted,
    TrackingNumberConflict,
    InvalidAssignment,
    DatabaseError,
)

from .pricing_config import PricingConfig, default_pricing_config, get_pricing_config
from .pricing_engine import PriceBreakdown, PricingEngine, ShipmentAttributes
from .tracking_number_service import TrackingNumberGenerator, generate_tracking_number
from .parcel_state_service import allowed_transitions, can_transition, transition
from .parcel_creation_service import calculate_pricing, create_parcel
from .courier_assignment_service import assign_courier
from .address_service import GeocodingAddressResolver
from .notification_service import LoggingNotificationSink

__all__ = [
    # Exceptions
    "ServiceError",
    "ValidationError",
    "InvalidTransition",
    "AddressUnresolvable",
    "NotFoundError",
    "ParcelNotFound",
    "ConflictError",
    "GenerationExhausted",
    "TrackingNumberConflict",
    "InvalidAssignment",
    "DatabaseError",
    # Pricing
    "PricingConfig",
    "default_pricing_config",
    "get_pricing_config",
    "PriceBreakdown",
    "PricingEngine",
    "ShipmentAttributes",
    # Tracking numbers
    "TrackingNumberGenerator",
    "generate_tracking_number",
    # Lifecycle
    "allowed_transitions",
    "can_transition",
    "transition",
    # Orchestrators
    "calculate_pricing",
    "create_parcel",
    "assign_courier",
    # Collaborators
    "GeocodingAddressResolver",
    "LoggingNotificationSink",
]
