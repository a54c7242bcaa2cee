"""Email channel registry.

Outbound email delivery is an external collaborator; the storefront only
needs something that implements EmailPort. The fake adapter is the default.
"""

from storefront.notifications.channel.email_port import EmailPort
from storefront.notifications.channel.fake_email import FakeEmailAdapter

_email_channel: EmailPort | None = None


def get_email_channel() -> EmailPort:
    global _email_channel
    if _email_channel is None:
        _email_channel = FakeEmailAdapter()
    return _email_channel


def set_email_channel(channel: EmailPort) -> None:
    global _email_channel
    _email_channel = channel


def reset_email_channel() -> None:
    global _email_channel
    _email_channel = None
