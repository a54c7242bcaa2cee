"""Tests for selling-group payment accounts, onboarding and charge resolution."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.checkout.errors import SELLER_ONBOARDING_INCOMPLETE
from storefront.connect.account import ConnectAccount, account_for
from storefront.connect.fees import BlockedCharge, ConnectCharge, load_connect_account, resolve_connect_charge
from storefront.connect.onboarding import create_onboarding_link
from storefront.payment.gateway.port import AccountSnapshot


@pytest.fixture()
def connect_enabled(monkeypatch):
    monkeypatch.setenv("CONNECT_ENABLED", "true")


def _store_account(gateway, complete=False):
    snapshot = AccountSnapshot(
        account_id="acct_seller",
        charges_enabled=complete,
        payouts_enabled=complete,
        details_submitted=complete,
        requirements={"currently_due": [] if complete else ["external_account"]},
    )
    gateway.add_account(snapshot)
    account = ConnectAccount.from_snapshot("sg-001", snapshot)
    current_domain.repository_for(ConnectAccount).add(account)
    return account


class TestOnboarding:
    def test_creates_account_and_link(self, gateway, connect_enabled):
        link = create_onboarding_link("sg-001", return_url="https://shop/return", refresh_url="https://shop/refresh")

        account = account_for("sg-001")
        assert account is not None
        assert account.account_id.startswith("acct_fake_")
        assert link["url"] == f"https://connect.example.test/setup/{account.account_id}"
        assert link["account"]["onboarding_complete"] is False

    def test_reuses_existing_account(self, gateway, connect_enabled):
        _store_account(gateway)
        link = create_onboarding_link("sg-001", return_url="https://r", refresh_url="https://f")
        assert link["account"]["account_id"] == "acct_seller"
        assert not [c for c in gateway.calls if c["method"] == "create_account"]

    def test_requires_connect_enabled(self, gateway):
        with pytest.raises(ValidationError):
            create_onboarding_link("sg-001", return_url="https://r", refresh_url="https://f")


class TestLoadConnectAccount:
    def test_refresh_syncs_processor_state(self, gateway):
        _store_account(gateway)
        gateway.add_account(
            AccountSnapshot(account_id="acct_seller", charges_enabled=True, payouts_enabled=True, details_submitted=True)
        )

        account = load_connect_account("sg-001")

        assert account.onboarding_complete is True
        assert account_for("sg-001").onboarding_complete is True

    def test_refresh_failure_falls_back_to_stored_snapshot(self, gateway):
        _store_account(gateway, complete=True)
        gateway.accounts_unavailable = True

        account = load_connect_account("sg-001")

        assert account.account_id == "acct_seller"
        assert account.onboarding_complete is True

    def test_no_account(self, gateway):
        assert load_connect_account("sg-001") is None


class TestResolveConnectCharge:
    def test_disabled_charges_platform(self, gateway):
        assert resolve_connect_charge("sg-001", 10000) == ConnectCharge(use_split=False)

    def test_complete_account_splits(self, gateway, connect_enabled, monkeypatch):
        monkeypatch.setenv("PLATFORM_FEE_BPS", "250")
        _store_account(gateway, complete=True)

        charge = resolve_connect_charge("sg-001", 10000)

        assert charge.use_split is True
        assert charge.fee_cents == 250
        assert charge.destination_account_id == "acct_seller"

    def test_incomplete_account_blocks_when_required(self, gateway, connect_enabled, monkeypatch):
        monkeypatch.setenv("CONNECT_REQUIRE_ACCOUNT", "1")
        _store_account(gateway)

        charge = resolve_connect_charge("sg-001", 10000)

        assert isinstance(charge, BlockedCharge)
        assert charge.code == SELLER_ONBOARDING_INCOMPLETE

    def test_incomplete_account_falls_back_to_platform(self, gateway, connect_enabled):
        _store_account(gateway)
        assert resolve_connect_charge("sg-001", 10000).use_split is False
