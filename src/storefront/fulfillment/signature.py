"""Keyed-hash verification for fulfillment provider webhooks."""

import hashlib
import hmac
from collections.abc import Mapping

SIGNATURE_HEADERS = ("x-printful-signature", "x-printful-hmac-sha256")


def resolve_signature_header(headers: Mapping[str, str]) -> str | None:
    """Return the first non-blank signature header the provider may have sent."""
    lowered = {str(key).lower(): value for key, value in headers.items()}
    for name in SIGNATURE_HEADERS:
        value = lowered.get(name)
        if value and value.strip():
            return value.strip()
    return None


def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str | None) -> bool:
    """HMAC-SHA256 hex digest of the raw body, compared in constant time.

    Accepts an optional ``sha256=`` prefix. A missing secret or signature
    never verifies.
    """
    if not secret or not signature:
        return False
    candidate = signature.strip()
    if candidate.startswith("sha256="):
        candidate = candidate[len("sha256=") :]
    if not candidate:
        return False
    return hmac.compare_digest(sign(body, secret).encode("ascii"), candidate.lower().encode("utf-8"))
