"""Shipping profile factory.

Provides get_shipping_profile() / set_shipping_profile() / reset_shipping_profile():
- FakeShippingProfile for development and testing (SHIPPING_ADAPTER=fake)
- RestShippingProfile against PROFILE_SERVICE_URL (SHIPPING_ADAPTER=rest)
"""

import os

from ordering.shipping.port import ShippingProfile

_current_profile: ShippingProfile | None = None


def get_shipping_profile() -> ShippingProfile:
    """Return the configured shipping profile. Defaults to FakeShippingProfile."""
    global _current_profile
    if _current_profile is None:
        adapter = os.environ.get("SHIPPING_ADAPTER", "fake")
        if adapter == "fake":
            from ordering.shipping.fake_adapter import FakeShippingProfile

            _current_profile = FakeShippingProfile(preferred_address=os.environ.get("DEFAULT_SHIPPING_ADDRESS"))
        elif adapter == "rest":
            from ordering.shipping.rest_adapter import RestShippingProfile

            _current_profile = RestShippingProfile(os.environ.get("PROFILE_SERVICE_URL", "http://localhost:5000/api"))
        else:
            raise ValueError(f"Unknown shipping adapter: {adapter}")
    return _current_profile


def set_shipping_profile(profile: ShippingProfile) -> None:
    """Override the active shipping profile (useful for tests)."""
    global _current_profile
    _current_profile = profile


def reset_shipping_profile() -> None:
    """Reset to default shipping profile."""
    global _current_profile
    _current_profile = None
