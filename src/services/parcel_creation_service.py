"""Parcel Creation Service.

Turns a completed shipment wizard payload into a persisted Parcel in one
all-or-nothing transaction.

Payload layout (all keys snake_case):

    {
        "sender": {
            "full_name", "email", "phone",
            "pickup_address": {street, area, city, county, state, zip_code,
                               country, latitude?, longitude?},
            "pickup_instructions"?,
        },
        "recipient": {
            "full_name", "email", "phone", "company"?,
            "delivery_address": {...same as pickup_address...},
            "delivery_instructions"?, "save_recipient"?,
        },
        "parcel": {
            "package_type", "weight", "weight_unit"?,
            "dimensions": {length, width, height, unit?},
            "estimated_value"?, "description"?, "packaging_instructions"?,
            "special_handling"?: {fragile, perishable, hazardous_material, high_value},
            "insurance_coverage"?,
        },
        "delivery": {
            "delivery_type", "distance_km"?,
            "pickup_date"?, "pickup_time"?, "estimated_delivery"?,
            "special_delivery_instructions"?,
            "preferences"?: {signature_required, email_notifications,
                             sms_notifications, contactless_delivery},
            "backup_options"?: {retry_next_business_day, leave_with_neighbor,
                                hold_at_pickup_point, return_to_sender},
        },
    }

Creation steps (create_parcel):
    1. Resolve sender and recipient addresses
    2. Store Dimensions with the shared volumetric weight
    3. Price the shipment
    4. Generate the tracking number
    5. Look up a recipient account by email (absence is fine)
    6. Store the Parcel (PAYMENT_PENDING, frozen pricing)
    7. Upsert the saved recipient if requested (non-critical, savepoint)
    8. Append the initial tracking history entry
    9. Store the "final_calculation" pricing snapshot
   10. Delete the user's draft
   11. Queue the sender's confirmation notification

Any failure except step 7 rolls back every write. Step 7 and the
post-commit notification hand-off report StepOutcomes that are logged
after the transaction commits.
"""

import dataclasses
import logging
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.dimensions import Dimensions
from src.models.enums import (
    DeliveryType,
    DimensionUnit,
    InsuranceCoverage,
    NotificationType,
    ParcelStatus,
    WeightUnit,
)
from src.models.notification import Notification
from src.models.parcel import Parcel
from src.models.tracking_history import TrackingHistoryEntry
from src.models.user import User
from src.services.address_service import AddressResolver
from src.services.database import run_atomic, run_non_critical
from src.services.draft_service import delete_draft
from src.services.exceptions import (
    DatabaseError,
    TrackingNumberConflict,
    ValidationError,
)
from src.services.logging_utils import (
    StepOutcome,
    get_service_logger,
    log_operation,
    log_step_outcomes,
)
from src.services.notification_service import (
    NotificationSink,
    dispatch_notifications,
    queue_notification,
)
from src.services.pricing_config import get_pricing_config
from src.services.pricing_engine import PriceBreakdown, PricingEngine, ShipmentAttributes
from src.services.pricing_history_service import save_pricing_history
from src.services.recipient_book_service import upsert_saved_recipient
from src.services.tracking_number_service import generate_tracking_number
from src.services.unit_converter import calculate_volumetric_weight
from src.utils.constants import ERROR_REQUIRED_FIELD, PRICING_STEP_FINAL
from src.utils.validators import (
    parse_datetime,
    sanitize_string,
    validate_choice,
    validate_non_negative_number,
    validate_parcel_details,
    validate_shipment_payload,
)

logger = get_service_logger(__name__)

INITIAL_HISTORY_DESCRIPTION = "Parcel created, awaiting payment confirmation"
STEP_SAVE_RECIPIENT = "save_recipient"


# =============================================================================
# Payload helpers
# =============================================================================


def _coordinates(address: Mapping) -> Optional[Tuple[float, float]]:
    if address.get("latitude") is None or address.get("longitude") is None:
        return None
    return (float(address["latitude"]), float(address["longitude"]))


def _flags(data: Mapping, key: str) -> Mapping:
    return data.get(key) or {}


def shipment_attributes_from_payload(payload: Mapping) -> ShipmentAttributes:
    """Build pricing input from a validated payload.

    Coordinates come from the payload addresses; create_parcel replaces them
    with the resolved (possibly geocoded) ones.
    """
    parcel = payload["parcel"]
    delivery = payload["delivery"]
    dimensions = parcel["dimensions"]
    special = _flags(parcel, "special_handling")
    preferences = _flags(delivery, "preferences")
    sender_address = _flags(payload.get("sender") or {}, "pickup_address")
    recipient_address = _flags(payload.get("recipient") or {}, "delivery_address")

    distance = delivery.get("distance_km")

    return ShipmentAttributes(
        package_type=parcel["package_type"],
        weight=float(parcel["weight"]),
        weight_unit=parcel.get("weight_unit") or WeightUnit.KG,
        length=float(dimensions["length"]),
        width=float(dimensions["width"]),
        height=float(dimensions["height"]),
        dimension_unit=dimensions.get("unit") or DimensionUnit.CM,
        estimated_value=float(parcel.get("estimated_value") or 0.0),
        delivery_type=delivery["delivery_type"],
        fragile=bool(special.get("fragile", False)),
        perishable=bool(special.get("perishable", False)),
        hazardous_material=bool(special.get("hazardous_material", False)),
        high_value=bool(special.get("high_value", False)),
        insurance_coverage=parcel.get("insurance_coverage") or InsuranceCoverage.NO_INSURANCE,
        signature_required=bool(preferences.get("signature_required", False)),
        sender_coordinates=_coordinates(sender_address),
        recipient_coordinates=_coordinates(recipient_address),
        distance_km=float(distance) if distance is not None else None,
    )


def _address_fields(party: Mapping, address_key: str) -> dict:
    fields = dict(party[address_key])
    fields.setdefault("name", party.get("full_name"))
    fields.setdefault("email", party.get("email"))
    fields.setdefault("phone", party.get("phone"))
    return fields


def _default_engine() -> PricingEngine:
    return PricingEngine(get_pricing_config())


# =============================================================================
# Pricing without writes
# =============================================================================


def calculate_pricing(
    payload: Mapping, pricing_engine: Optional[PricingEngine] = None
) -> PriceBreakdown:
    """Price a (possibly incomplete) wizard payload without writing anything.

    Only the parcel and delivery sections are required; sender and recipient
    coordinates are used for the distance when present.

    Raises:
        ValidationError: If the parcel or delivery section is invalid
    """
    errors = []
    parcel = payload.get("parcel") if isinstance(payload, Mapping) else None
    delivery = payload.get("delivery") if isinstance(payload, Mapping) else None

    if not isinstance(parcel, Mapping):
        errors.append(f"Parcel: {ERROR_REQUIRED_FIELD}")
    else:
        errors.extend(validate_parcel_details(parcel)[1])

    if not isinstance(delivery, Mapping):
        errors.append(f"Delivery: {ERROR_REQUIRED_FIELD}")
    else:
        is_valid, error = validate_choice(delivery.get("delivery_type"), DeliveryType, "Delivery type")
        if not is_valid:
            errors.append(error)
        if delivery.get("distance_km") is not None:
            is_valid, error = validate_non_negative_number(delivery.get("distance_km"), "Distance")
            if not is_valid:
                errors.append(error)

    if errors:
        raise ValidationError(errors)

    engine = pricing_engine or _default_engine()
    return engine.compute_price(shipment_attributes_from_payload(payload))


# =============================================================================
# Creation
# =============================================================================


def _store_dimensions(
    attrs: ShipmentAttributes, engine: PricingEngine, user_id: int, session: Session
) -> Dimensions:
    dimensions = Dimensions(
        length=attrs.length,
        width=attrs.width,
        height=attrs.height,
        unit=attrs.dimension_unit,
        volumetric_weight=calculate_volumetric_weight(
            attrs.length,
            attrs.width,
            attrs.height,
            attrs.dimension_unit,
            divisor=engine.config.volumetric_divisor,
        ),
        created_by=user_id,
    )
    session.add(dimensions)
    session.flush()
    return dimensions


def _find_recipient_account(email: Optional[str], session: Session) -> Optional[User]:
    if not email:
        return None
    return (
        session.query(User)
        .filter(User.email == email, User.deleted_at.is_(None))
        .first()
    )


def _build_parcel(
    user_id: int,
    payload: Mapping,
    attrs: ShipmentAttributes,
    pricing: PriceBreakdown,
    tracking_number: str,
    recipient_account: Optional[User],
    sender_address_id: int,
    recipient_address_id: int,
    dimensions_id: int,
) -> Parcel:
    sender = payload["sender"]
    recipient = payload["recipient"]
    details = payload["parcel"]
    delivery = payload["delivery"]
    preferences = _flags(delivery, "preferences")
    backup = _flags(delivery, "backup_options")

    return Parcel(
        tracking_number=tracking_number,
        status=ParcelStatus.PAYMENT_PENDING,
        sender_id=user_id,
        recipient_id=recipient_account.id if recipient_account is not None else None,
        sender_address_id=sender_address_id,
        recipient_address_id=recipient_address_id,
        dimensions_id=dimensions_id,
        # Pricing snapshot
        base_price=pricing.base_rate,
        weight_surcharge=pricing.weight_surcharge,
        distance_surcharge=pricing.distance_surcharge,
        service_surcharge=pricing.service_surcharge,
        special_handling_surcharge=pricing.special_handling_surcharge,
        delivery_speed_surcharge=pricing.delivery_speed_surcharge,
        insurance_cost=pricing.insurance_cost,
        signature_cost=pricing.signature_cost,
        subtotal=pricing.subtotal,
        tax=pricing.tax,
        total_price=pricing.total,
        currency=pricing.currency,
        estimated_delivery_days=pricing.estimated_delivery_days,
        volumetric_weight=pricing.volumetric_weight,
        billable_weight=pricing.billable_weight,
        # Package
        package_type=attrs.package_type,
        weight=attrs.weight,
        weight_unit=attrs.weight_unit,
        estimated_value=attrs.estimated_value,
        description=sanitize_string(details.get("description")),
        # Delivery
        delivery_type=attrs.delivery_type,
        pickup_date=parse_datetime(delivery.get("pickup_date")),
        pickup_time_slot=sanitize_string(delivery.get("pickup_time")),
        estimated_delivery=parse_datetime(delivery.get("estimated_delivery")),
        # Special handling
        fragile=attrs.fragile,
        perishable=attrs.perishable,
        hazardous_material=attrs.hazardous_material,
        high_value=attrs.high_value,
        # Instructions
        pickup_instructions=sanitize_string(sender.get("pickup_instructions")),
        delivery_instructions=sanitize_string(recipient.get("delivery_instructions")),
        packaging_instructions=sanitize_string(details.get("packaging_instructions")),
        special_handling=sanitize_string(delivery.get("special_delivery_instructions")),
        # Insurance and preferences
        insurance_coverage=attrs.insurance_coverage,
        signature_required=attrs.signature_required,
        email_notifications=bool(preferences.get("email_notifications", True)),
        sms_notifications=bool(preferences.get("sms_notifications", False)),
        contactless_delivery=bool(preferences.get("contactless_delivery", False)),
        retry_next_business_day=bool(backup.get("retry_next_business_day", False)),
        leave_with_neighbor=bool(backup.get("leave_with_neighbor", False)),
        hold_at_pickup_point=bool(backup.get("hold_at_pickup_point", False)),
        return_to_sender=bool(backup.get("return_to_sender", False)),
        created_by=user_id,
    )


def _create_parcel_impl(
    user_id: int,
    payload: Mapping,
    address_resolver: AddressResolver,
    engine: PricingEngine,
    session: Session,
) -> Tuple[Parcel, List[StepOutcome], List[Notification]]:
    """Internal implementation of create_parcel.

    Transaction boundary: Inherits session from caller.
    Runs steps 1-11 listed in the module docstring; returns the parcel, the
    non-critical step outcomes and the queued notifications.
    """
    sender = payload["sender"]
    recipient = payload["recipient"]

    # 1. Addresses
    sender_address = address_resolver.resolve_address(
        _address_fields(sender, "pickup_address"), user_id=user_id, session=session
    )
    recipient_address = address_resolver.resolve_address(
        _address_fields(recipient, "delivery_address"), user_id=user_id, session=session
    )

    attrs = dataclasses.replace(
        shipment_attributes_from_payload(payload),
        sender_coordinates=sender_address.coordinates,
        recipient_coordinates=recipient_address.coordinates,
    )

    # 2. Dimensions
    dimensions = _store_dimensions(attrs, engine, user_id, session)

    # 3. Pricing
    pricing = engine.compute_price(attrs)

    # 4. Tracking number
    tracking_number = generate_tracking_number(session)

    # 5. Recipient account (optional)
    recipient_account = _find_recipient_account(recipient.get("email"), session)

    # 6. Parcel
    parcel = _build_parcel(
        user_id,
        payload,
        attrs,
        pricing,
        tracking_number,
        recipient_account,
        sender_address.id,
        recipient_address.id,
        dimensions.id,
    )
    session.add(parcel)
    try:
        session.flush()
    except IntegrityError as e:
        if "tracking_number" in str(e.orig):
            raise TrackingNumberConflict(tracking_number) from e
        raise

    # 7. Saved recipient (non-critical)
    outcomes = []
    if recipient.get("save_recipient"):
        outcomes.append(
            run_non_critical(
                session,
                STEP_SAVE_RECIPIENT,
                lambda s: upsert_saved_recipient(
                    user_id,
                    {
                        "name": recipient.get("full_name"),
                        "email": recipient.get("email"),
                        "phone": recipient.get("phone"),
                        "company": recipient.get("company"),
                    },
                    recipient_address.id,
                    s,
                ),
            )
        )

    # 8. Initial history entry
    session.add(
        TrackingHistoryEntry(
            parcel_id=parcel.id,
            status=ParcelStatus.PAYMENT_PENDING,
            description=INITIAL_HISTORY_DESCRIPTION,
            actor_id=user_id,
        )
    )
    session.flush()

    # 9. Pricing snapshot
    save_pricing_history(parcel.id, PRICING_STEP_FINAL, pricing, session=session)

    # 10. Draft cleanup
    delete_draft(user_id, session=session)

    # 11. Sender confirmation
    notifications = [
        queue_notification(
            session,
            user_id=user_id,
            parcel_id=parcel.id,
            notification_type=NotificationType.EMAIL,
            subject="Parcel created",
            message=(
                f"Your parcel {tracking_number} has been created and is awaiting "
                f"payment confirmation. Total: {pricing.currency} {pricing.total:.2f}."
            ),
            recipient=sender.get("email"),
        )
    ]

    return parcel, outcomes, notifications


def create_parcel(
    user_id: int,
    payload: Mapping[str, Any],
    *,
    address_resolver: AddressResolver,
    notification_sink: Optional[NotificationSink] = None,
    session: Session = None,
    pricing_engine: Optional[PricingEngine] = None,
) -> Parcel:
    """Create a parcel from a completed wizard payload.

    Transaction boundary: Multi-step write, all-or-nothing (see module
    docstring). When ``session`` is given the caller owns the commit and no
    notification hand-off happens here.

    Args:
        user_id: Sender's account id
        payload: Wizard payload (layout in the module docstring)
        address_resolver: Persists and geocodes the two addresses
        notification_sink: Receives queued notifications after commit
        session: Optional session for transaction sharing
        pricing_engine: Engine to price with (default: process tariff)

    Returns:
        The created Parcel (status PAYMENT_PENDING)

    Raises:
        ValidationError: If the payload is invalid (nothing is written)
        AddressUnresolvable: If an address cannot be resolved
        GenerationExhausted: If no free tracking number was found
        TrackingNumberConflict: If the tracking number was taken concurrently
        DatabaseError: On any other storage failure
    """
    is_valid, errors = validate_shipment_payload(payload)
    if not is_valid:
        log_operation(
            logger,
            operation="create_parcel",
            outcome="validation_failed",
            level=logging.WARNING,
            user_id=user_id,
            error_count=len(errors),
        )
        raise ValidationError(errors)

    engine = pricing_engine or _default_engine()
    owns_transaction = session is None

    try:
        parcel, outcomes, notifications = run_atomic(
            lambda s: _create_parcel_impl(user_id, payload, address_resolver, engine, s),
            session,
        )
    except SQLAlchemyError as e:
        log_operation(
            logger,
            operation="create_parcel",
            outcome="database_error",
            level=logging.ERROR,
            user_id=user_id,
            error=str(e),
        )
        raise DatabaseError("Failed to create parcel", original_error=e)

    if not owns_transaction:
        log_step_outcomes(logger, "create_parcel", outcomes, user_id=user_id)
        return parcel

    log_operation(
        logger,
        operation="create_parcel",
        outcome="success",
        user_id=user_id,
        parcel_id=parcel.id,
        tracking_number=parcel.tracking_number,
    )
    outcomes.extend(dispatch_notifications(notifications, notification_sink))
    log_step_outcomes(
        logger,
        "create_parcel",
        outcomes,
        user_id=user_id,
        tracking_number=parcel.tracking_number,
    )
    return parcel
