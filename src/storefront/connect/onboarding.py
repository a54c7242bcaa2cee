"""Sub-account onboarding: create-or-refresh the account, then hand out a hosted setup link."""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.config import get_connect_settings
from storefront.connect.account import ConnectAccount
from storefront.connect.fees import load_connect_account
from storefront.payment.gateway import get_gateway

logger = structlog.get_logger(__name__)


def create_onboarding_link(selling_group_id, return_url: str, refresh_url: str, email: str | None = None) -> dict:
    if not get_connect_settings().enabled:
        raise ValidationError({"connect": ["Split payments are not enabled"]})

    gateway = get_gateway()
    account = load_connect_account(selling_group_id)
    if account is None:
        account = ConnectAccount.from_snapshot(str(selling_group_id), gateway.create_account(str(selling_group_id), email))
        current_domain.repository_for(ConnectAccount).add(account)
        logger.info("connect_account_created", selling_group_id=str(selling_group_id), account_id=account.account_id)

    url = gateway.create_account_link(account.account_id, refresh_url=refresh_url, return_url=return_url)
    return {"url": url, "account": account.to_dict()}
