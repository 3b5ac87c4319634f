"""
Address model for resolved pickup and delivery addresses.

Addresses are created once by the address resolver during parcel creation
and never mutated afterwards.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Index

from .base import BaseModel


class Address(BaseModel):
    """
    A geocoded postal address.

    Attributes:
        name: Contact name or a "street, city" fallback
        email, phone: Contact details captured with the address
        street, area, city, county, state, zip_code, country: Postal fields
        latitude, longitude: Coordinates, supplied or geocoded
        is_validated: True if the coordinates came from the geocoder
        validated_at: When geocoding happened
        created_by: User who entered the address
    """

    __tablename__ = "addresses"

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    street = Column(String(255), nullable=False)
    area = Column(String(120), nullable=True)
    city = Column(String(120), nullable=False)
    county = Column(String(120), nullable=True)
    state = Column(String(120), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(80), nullable=False, default="Kenya")

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_validated = Column(Boolean, nullable=False, default=False)
    validated_at = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (Index("idx_address_created_by", "created_by"),)

    @property
    def coordinates(self):
        """(latitude, longitude) tuple, or None if either is missing."""
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def __repr__(self) -> str:
        """String representation of address."""
        return f"Address(id={self.id}, city='{self.city}')"
