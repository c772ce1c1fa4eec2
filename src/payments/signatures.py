"""HMAC-SHA256 signatures over payment confirmations.

The gateway signs ``"{intent_id}|{provider_reference}"`` with the merchant
secret; the payment service recomputes the digest before trusting a
client-reported success.
"""

import hashlib
import hmac
import os

DEFAULT_SIGNING_SECRET = "dev-signing-secret"


def signing_secret() -> str:
    return os.environ.get("PAYMENT_SIGNING_SECRET", DEFAULT_SIGNING_SECRET)


def sign(intent_id: str, provider_reference: str, secret: str | None = None) -> str:
    """Hex digest for an intent/reference pair."""
    key = (secret if secret is not None else signing_secret()).encode("utf-8")
    message = f"{intent_id}|{provider_reference}".encode()
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def signature_matches(intent_id: str, provider_reference: str, signature: str, secret: str | None = None) -> bool:
    if not signature:
        return False
    expected = sign(intent_id, provider_reference, secret)
    return hmac.compare_digest(expected, signature)
