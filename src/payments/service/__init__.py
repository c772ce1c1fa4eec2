"""Payment service factory.

Provides get_payment_service() / set_payment_service() / reset_payment_service():
- FakePaymentService for development and testing (PAYMENT_ADAPTER=fake)
- RestPaymentService against PAYMENT_SERVICE_URL (PAYMENT_ADAPTER=rest)
"""

import os

from payments.service.port import PaymentService

_current_service: PaymentService | None = None


def get_payment_service() -> PaymentService:
    """Return the configured payment service. Defaults to FakePaymentService."""
    global _current_service
    if _current_service is None:
        adapter = os.environ.get("PAYMENT_ADAPTER", "fake")
        if adapter == "fake":
            from payments.service.fake_adapter import FakePaymentService

            _current_service = FakePaymentService()
        elif adapter == "rest":
            from payments.service.rest_adapter import RestPaymentService

            _current_service = RestPaymentService(os.environ.get("PAYMENT_SERVICE_URL", "http://localhost:5000/api"))
        else:
            raise ValueError(f"Unknown payment adapter: {adapter}")
    return _current_service


def set_payment_service(service: PaymentService) -> None:
    """Override the active payment service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_payment_service() -> None:
    """Reset to default payment service."""
    global _current_service
    _current_service = None
