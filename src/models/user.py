"""
User model for account records referenced by the parcel core.

Only the fields the core reads are modelled: role and activity flags for
courier eligibility, and email for recipient lookup and notifications.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Index

from .base import BaseModel
from .enums import UserRole


class User(BaseModel):
    """
    Platform account (customer, courier or admin).

    Attributes:
        name: Display name
        email: Unique login/contact email
        phone: Optional phone number
        role: UserRole
        is_active: False once an admin deactivates the account
        deleted_at: Soft-delete timestamp
    """

    __tablename__ = "users"

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.CUSTOMER)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_user_role", "role"),)

    @property
    def is_deleted(self) -> bool:
        """True if the account has been soft-deleted."""
        return self.deleted_at is not None

    def __repr__(self) -> str:
        """String representation of user."""
        return f"User(id={self.id}, email='{self.email}', role={self.role.value if self.role else None})"
