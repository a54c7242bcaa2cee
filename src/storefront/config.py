"""Environment-driven settings for the Storefront domain.

Settings are read on every call rather than cached at import time, so a
deployment can flip a flag (or a test can ``monkeypatch.setenv``) without
reloading modules.
"""

import os
from dataclasses import dataclass

DEFAULT_PLATFORM_FEE_BPS = 1000
MAX_BASIS_POINTS = 10_000


def _flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(float(raw.strip()))
    except ValueError:
        return default


@dataclass(frozen=True)
class ConnectSettings:
    """Split-payment settings for selling-group sub-accounts."""

    enabled: bool
    platform_fee_basis_points: int
    require_account: bool


@dataclass(frozen=True)
class PrintfulSettings:
    api_key: str | None
    api_base: str
    store_id: str | None
    webhook_secret: str | None


def get_connect_settings() -> ConnectSettings:
    bps = _int("PLATFORM_FEE_BPS", DEFAULT_PLATFORM_FEE_BPS)
    return ConnectSettings(
        enabled=_flag("CONNECT_ENABLED"),
        platform_fee_basis_points=min(MAX_BASIS_POINTS, max(0, bps)),
        require_account=_flag("CONNECT_REQUIRE_ACCOUNT"),
    )


def get_printful_settings() -> PrintfulSettings:
    return PrintfulSettings(
        api_key=os.environ.get("PRINTFUL_API_KEY") or None,
        api_base=(os.environ.get("PRINTFUL_API_BASE") or "https://api.printful.com").rstrip("/"),
        store_id=os.environ.get("PRINTFUL_STORE_ID") or None,
        webhook_secret=os.environ.get("PRINTFUL_WEBHOOK_SECRET") or None,
    )


def default_currency() -> str:
    return (os.environ.get("STORE_DEFAULT_CURRENCY") or "usd").lower()


def site_url() -> str:
    return (os.environ.get("SITE_URL") or "http://localhost:8000").rstrip("/")


def webhook_registration_ttl() -> int:
    return max(0, _int("WEBHOOK_REGISTRATION_TTL_SECONDS", 3600))


def is_production() -> bool:
    return os.environ.get("PROTEAN_ENV") == "production"
