"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (GATEWAY_ADAPTER=fake)
- HostedGateway for the browser widget (GATEWAY_ADAPTER=hosted)
"""

import os

from payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        from payments.service import get_payment_service

        adapter = os.environ.get("GATEWAY_ADAPTER", "fake")
        if adapter == "fake":
            from payments.gateway.fake_adapter import FakeGateway

            _current_gateway = FakeGateway(get_payment_service())
        elif adapter == "hosted":
            from payments.gateway.hosted_adapter import HostedGateway

            _current_gateway = HostedGateway(get_payment_service())
        else:
            raise ValueError(f"Unknown gateway adapter: {adapter}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
