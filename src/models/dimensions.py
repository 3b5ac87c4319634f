"""
Dimensions model for the physical size of a parcel.

Feature: volumetric weight is computed once at creation with the same
shared formula the pricing engine uses, and stored alongside the raw
measurements.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, Enum as SQLEnum, CheckConstraint

from .base import BaseModel
from .enums import DimensionUnit


class Dimensions(BaseModel):
    """
    Package measurements as entered by the sender.

    Attributes:
        length, width, height: Measurements in ``unit``
        unit: DimensionUnit of the measurements
        volumetric_weight: Volumetric weight in kg
        created_by: User who created the parcel
    """

    __tablename__ = "dimensions"

    length = Column(Float, nullable=False)
    width = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    unit = Column(SQLEnum(DimensionUnit), nullable=False, default=DimensionUnit.CM)
    volumetric_weight = Column(Float, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        CheckConstraint("length > 0", name="ck_dimensions_length_positive"),
        CheckConstraint("width > 0", name="ck_dimensions_width_positive"),
        CheckConstraint("height > 0", name="ck_dimensions_height_positive"),
    )

    def __repr__(self) -> str:
        """String representation of dimensions."""
        unit = self.unit.value if self.unit else ""
        return f"Dimensions(id={self.id}, {self.length}x{self.width}x{self.height}{unit})"
