"""Once-per-TTL webhook registration with the fulfillment provider.

Every app worker calls ``ensure_registered()`` at startup and it is safe to
call it again on any request path: the first caller performs the upsert
while holding the lock, concurrent callers wait for it, and later callers
return immediately until the TTL lapses. A failed attempt is not cached.
"""

import threading
import time

import structlog

from storefront.config import site_url, webhook_registration_ttl
from storefront.fulfillment.normalization import WEBHOOK_EVENT_TYPES
from storefront.fulfillment.provider import get_provider

logger = structlog.get_logger(__name__)

WEBHOOK_PATH = "/store/webhooks/fulfillment"


class WebhookRegistrar:
    def __init__(self, clock=time.monotonic):
        self._lock = threading.Lock()
        self._clock = clock
        self._registered_at: float | None = None
        self._registered_url: str | None = None

    def is_fresh(self, url: str, ttl: int) -> bool:
        if self._registered_at is None or self._registered_url != url:
            return False
        return self._clock() - self._registered_at < ttl

    def ensure_registered(self, url: str | None = None, event_types: list[str] | None = None) -> bool:
        url = url or f"{site_url()}{WEBHOOK_PATH}"
        event_types = event_types or WEBHOOK_EVENT_TYPES
        ttl = webhook_registration_ttl()

        if self.is_fresh(url, ttl):
            return True

        with self._lock:
            if self.is_fresh(url, ttl):
                return True
            try:
                registered = get_provider().register_webhook(url, event_types)
            except Exception as exc:
                logger.warning("fulfillment_webhook_registration_failed", url=url, error=str(exc))
                return False

            if registered:
                self._registered_at = self._clock()
                self._registered_url = url
                logger.info("fulfillment_webhook_registered", url=url)
            return registered

    def reset(self) -> None:
        with self._lock:
            self._registered_at = None
            self._registered_url = None


registrar = WebhookRegistrar()
