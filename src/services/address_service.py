"""Address resolution for parcel creation.

The parcel core does not geocode by itself. It depends on an address
resolver: anything with a ``resolve_address(fields, *, user_id, session)``
method that persists an Address and returns it. GeocodingAddressResolver
is the standard implementation; it asks a Geocoder for coordinates when
the caller did not supply them.

Geocoding providers are outside this package. Tests and the command line
pass their own Geocoder.
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Protocol

from sqlalchemy.orm import Session

from src.models.address import Address
from src.services.exceptions import AddressUnresolvable
from src.services.logging_utils import get_service_logger
from src.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)

DEFAULT_COUNTRY = "Kenya"

ADDRESS_FIELDS = (
    "name",
    "email",
    "phone",
    "street",
    "area",
    "city",
    "county",
    "state",
    "zip_code",
    "country",
)


@dataclass(frozen=True)
class GeocodeResult:
    """One geocoder match."""

    latitude: float
    longitude: float
    formatted_address: str = ""


class Geocoder(Protocol):
    """Turns a free-text address into candidate coordinates, best first."""

    def geocode(self, query: str) -> List[GeocodeResult]:
        ...


class AddressResolver(Protocol):
    """Persists an address for a parcel and returns it."""

    def resolve_address(
        self, fields: Mapping, *, user_id: Optional[int], session: Session
    ) -> Address:
        ...


def address_summary(fields: Mapping) -> str:
    """One-line "street, area, city, county" text used for geocoding and errors."""
    parts = [fields.get(key) for key in ("street", "area", "city", "county")]
    return ", ".join(str(p) for p in parts if p)


class GeocodingAddressResolver:
    """
    Address resolver backed by a Geocoder.

    Coordinates supplied by the caller are stored as-is (unvalidated).
    Otherwise the first geocoder match is used and the address is marked
    validated.

    Args:
        geocoder: Geocoder consulted for addresses without coordinates
    """

    def __init__(self, geocoder: Geocoder):
        self.geocoder = geocoder

    def _geocode(self, fields: Mapping) -> GeocodeResult:
        summary = address_summary(fields)
        try:
            results = self.geocoder.geocode(summary)
        except Exception as e:  # geocoder failures surface as AddressUnresolvable
            logger.warning(f"Geocoding failed for address: {summary}: {e}")
            raise AddressUnresolvable(summary, reason="geocoder error") from e

        if not results:
            raise AddressUnresolvable(summary)
        return results[0]

    def resolve_address(
        self, fields: Mapping, *, user_id: Optional[int], session: Session
    ) -> Address:
        """
        Persist ``fields`` as an Address, geocoding if needed.

        Transaction boundary: Inherits session from caller.

        Raises:
            AddressUnresolvable: If street or city is missing, or the
                geocoder fails or finds nothing
        """
        if not fields.get("street") or not fields.get("city"):
            raise AddressUnresolvable(address_summary(fields), reason="street and city are required")

        latitude = fields.get("latitude")
        longitude = fields.get("longitude")
        is_validated = False

        if latitude is None or longitude is None:
            match = self._geocode(fields)
            latitude, longitude = match.latitude, match.longitude
            is_validated = True
        else:
            latitude, longitude = float(latitude), float(longitude)

        values = {key: fields.get(key) for key in ADDRESS_FIELDS}
        address = Address(
            **values,
            latitude=latitude,
            longitude=longitude,
            is_validated=is_validated,
            validated_at=utc_now() if is_validated else None,
            created_by=user_id,
        )
        if not address.name:
            address.name = f"{fields['street']}, {fields['city']}"
        if not address.country:
            address.country = DEFAULT_COUNTRY

        session.add(address)
        session.flush()
        logger.debug(f"Address created with ID: {address.id}")
        return address
