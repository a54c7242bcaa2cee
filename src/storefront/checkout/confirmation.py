"""Buyer-facing order confirmation codes."""

import secrets

# No 0/O or 1/I: codes are read aloud and typed back by buyers
CONFIRMATION_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CONFIRMATION_CODE_LENGTH = 8


def generate_confirmation_code() -> str:
    return "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH))
