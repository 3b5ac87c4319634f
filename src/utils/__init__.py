"""Utilities package for the SendIT parcel core."""

from .datetime_utils import utc_now, utc_in

__all__ = [
    "utc_now",
    "utc_in",
]
