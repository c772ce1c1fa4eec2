"""Shipping profile port (abstract interface).

The customer's profile can hold two kinds of delivery address: a saved
location captured by the location service, and a plain free-text address
typed into the profile. Checkout prefers the saved location.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class ShippingProfileError(Exception):
    """The profile service could not answer."""


class ShippingProfileUnavailable(ShippingProfileError):
    """Timeout, transport failure or 5xx from the profile service."""


@dataclass(frozen=True)
class SavedLocation:
    address: str = ""
    formatted_address: str = ""
    city: str = ""
    state: str = ""
    latitude: float | None = None
    longitude: float | None = None

    @property
    def display_address(self) -> str:
        """Best single-line rendering of the location, or "" if it has none."""
        if self.formatted_address.strip():
            return self.formatted_address.strip()
        parts = [part.strip() for part in (self.address, self.city, self.state) if part and part.strip()]
        return ", ".join(parts)

    @classmethod
    def from_record(cls, record: dict) -> "SavedLocation":
        coordinates = record.get("coordinates") or {}
        return cls(
            address=record.get("address") or "",
            formatted_address=record.get("formattedAddress") or "",
            city=record.get("city") or "",
            state=record.get("state") or "",
            latitude=coordinates.get("lat"),
            longitude=coordinates.get("lng"),
        )


class ShippingProfile(ABC):
    """Abstract shipping profile interface."""

    @abstractmethod
    async def get_saved_location(self) -> SavedLocation | None:
        """The customer's saved delivery location, if one was captured."""
        ...

    @abstractmethod
    async def get_preferred_address(self) -> str | None:
        """The free-text address from the customer's profile, if any."""
        ...
