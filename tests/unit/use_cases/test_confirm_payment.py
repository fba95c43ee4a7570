"""Unit tests for ConfirmPayment use case

Tests cover:
- Terminal records returned unchanged
- Pending upstream status changes nothing
- Recharge success credits amount + bonus once
- Recharge failure records the status without touching the ledger
- Membership success upgrades the tier and issues welfare codes
- Lost concurrent transition re-reads the record
- Monthly card success starts a 30 day card once
"""

from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import IntegrityError
from libs.result import Return
from loyalty.app.services.retry import RetryPolicy
from loyalty.app.use_cases.payments import ConfirmPayment
from loyalty.domain.account import Tier
from loyalty.domain.discount_code import CodeType
from loyalty.domain.ledger_transaction import LedgerTransaction, TransactionKind
from loyalty.domain.payment import MembershipPurchase, MonthlyCard, MonthlyCardPlan, PaymentStatus, RechargeRecord


def _recharge(status=PaymentStatus.PENDING):
    return RechargeRecord(
        id=1, account_id=1, payment_reference="pi_1",
        amount=20000, bonus_amount=3500, total_amount=23500, status=status,
    )


def _membership(status=PaymentStatus.PENDING, tier=Tier.SUPER_SHAREHOLDER):
    return MembershipPurchase(
        id=2, account_id=1, payment_reference="pi_m", target_tier=tier, amount=3000, status=status,
    )


@pytest.fixture
def mock_account_repo():
    repo = MagicMock()
    repo.update_membership = AsyncMock()
    return repo


@pytest.fixture
def mock_recharge_repo():
    repo = MagicMock()
    repo.get_by_reference = AsyncMock(return_value=None)
    repo.save = AsyncMock(side_effect=lambda record: record)
    return repo


@pytest.fixture
def mock_membership_repo():
    repo = MagicMock()
    repo.get_by_reference = AsyncMock(return_value=None)
    repo.complete_pending = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_ledger():
    ledger = MagicMock()
    ledger.apply = AsyncMock(
        return_value=LedgerTransaction(
            id=77, account_id=1, kind=TransactionKind.EARN,
            balance_delta=23500, stamps_delta=0, balance_after=23500, stamps_after=0,
        )
    )
    return ledger


@pytest.fixture
def mock_payment_gateway():
    gateway = MagicMock()
    gateway.retrieve_status = AsyncMock(return_value=PaymentStatus.SUCCEEDED)
    return gateway


@pytest.fixture
def mock_welfare_issuer():
    issuer = MagicMock()
    issuer.execute = AsyncMock(return_value=Return.ok(MagicMock(code="100200")))
    return issuer


@pytest.fixture
def use_case(
    mock_uow, mock_account_repo, mock_recharge_repo, mock_membership_repo,
    mock_ledger, mock_payment_gateway, mock_welfare_issuer,
):
    return ConfirmPayment(
        mock_uow,
        mock_account_repo,
        mock_recharge_repo,
        mock_membership_repo,
        mock_ledger,
        mock_payment_gateway,
        welfare_issuer=mock_welfare_issuer,
        retry_policy=RetryPolicy(max_attempts=1, base_backoff_seconds=0),
    )


@pytest.mark.asyncio
class TestConfirmRecharge:

    async def test_success_credits_total_once(self, use_case, mock_uow, mock_recharge_repo, mock_ledger):
        """
        Given a pending $200 recharge
        When the gateway reports success
        Then 23500 is credited under recharge:pi_1 and the record is succeeded
        """
        mock_recharge_repo.get_by_reference = AsyncMock(return_value=_recharge())

        result = await use_case.execute("pi_1")

        assert result.is_ok()
        assert result.value.status == "succeeded"
        assert result.value.ledger_transaction_id == 77
        kwargs = mock_ledger.apply.call_args.kwargs
        assert kwargs["delta_balance"] == 23500
        assert kwargs["idempotency_key"] == "recharge:pi_1"
        mock_uow.commit.assert_called_once()

    async def test_terminal_record_returned_unchanged(
        self, use_case, mock_recharge_repo, mock_ledger, mock_payment_gateway
    ):
        mock_recharge_repo.get_by_reference = AsyncMock(return_value=_recharge(PaymentStatus.SUCCEEDED))

        result = await use_case.execute("pi_1")

        assert result.value.status == "succeeded"
        mock_payment_gateway.retrieve_status.assert_not_called()
        mock_ledger.apply.assert_not_called()

    async def test_pending_changes_nothing(self, use_case, mock_uow, mock_recharge_repo, mock_ledger, mock_payment_gateway):
        mock_recharge_repo.get_by_reference = AsyncMock(return_value=_recharge())
        mock_payment_gateway.retrieve_status = AsyncMock(return_value=PaymentStatus.PENDING)

        result = await use_case.execute("pi_1")

        assert result.value.status == "pending"
        mock_ledger.apply.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_failed_payment_not_credited(self, use_case, mock_recharge_repo, mock_ledger):
        mock_recharge_repo.get_by_reference = AsyncMock(return_value=_recharge())

        result = await use_case.execute("pi_1", delivered_status=PaymentStatus.FAILED, upstream_status="requires_payment_method")

        assert result.value.status == "failed"
        assert result.value.upstream_status == "requires_payment_method"
        mock_ledger.apply.assert_not_called()

    async def test_settled_while_waiting_for_lock(self, use_case, mock_uow, mock_recharge_repo, mock_ledger):
        """
        Given a concurrent confirm settled the record after our first read
        When the locked re-read sees the terminal status
        Then nothing is applied
        """
        mock_recharge_repo.get_by_reference = AsyncMock(
            side_effect=[_recharge(), _recharge(PaymentStatus.SUCCEEDED)]
        )

        result = await use_case.execute("pi_1")

        assert result.value.status == "succeeded"
        mock_ledger.apply.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_duplicate_key_race_rereads(self, use_case, mock_uow, mock_recharge_repo, mock_ledger):
        mock_recharge_repo.get_by_reference = AsyncMock(
            side_effect=[_recharge(), _recharge(), _recharge(PaymentStatus.SUCCEEDED)]
        )
        mock_ledger.apply = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("duplicate key")))

        result = await use_case.execute("pi_1")

        assert result.is_ok()
        assert result.value.status == "succeeded"
        mock_uow.rollback.assert_called_once()

    async def test_unknown_reference(self, use_case):
        result = await use_case.execute("pi_missing")

        assert result.error.code == "PAYMENT_NOT_FOUND"


@pytest.mark.asyncio
class TestConfirmMembership:

    async def test_success_upgrades_and_issues_welfare(
        self, use_case, mock_uow, mock_membership_repo, mock_account_repo, mock_welfare_issuer
    ):
        """
        Given a pending super shareholder purchase
        When the payment succeeds
        Then the tier is upgraded for a year and ten $3 codes are issued after commit
        """
        mock_membership_repo.get_by_reference = AsyncMock(
            side_effect=[_membership(), _membership(), _membership(PaymentStatus.SUCCEEDED)]
        )

        result = await use_case.execute("pi_m")

        assert result.value.status == "succeeded"
        assert result.value.target_tier == "super_shareholder"
        assert result.value.welfare_codes_issued == 10
        assert result.value.welfare_codes_failed == 0
        account_id, tier, expires_at = mock_account_repo.update_membership.call_args.args
        assert (account_id, tier) == (1, Tier.SUPER_SHAREHOLDER)
        assert mock_welfare_issuer.execute.call_count == 10
        kwargs = mock_welfare_issuer.execute.call_args.kwargs
        assert kwargs["amount"] == 300
        assert kwargs["code_type"] == CodeType.SUPER_SHAREHOLDER_REWARD
        mock_uow.commit.assert_called_once()

    async def test_shareholder_gets_one_code(self, use_case, mock_membership_repo, mock_welfare_issuer):
        mock_membership_repo.get_by_reference = AsyncMock(
            side_effect=[
                _membership(tier=Tier.SHAREHOLDER),
                _membership(tier=Tier.SHAREHOLDER),
                _membership(PaymentStatus.SUCCEEDED, tier=Tier.SHAREHOLDER),
            ]
        )

        result = await use_case.execute("pi_m")

        assert result.value.welfare_codes_issued == 1
        assert mock_welfare_issuer.execute.call_args.kwargs["amount"] == 800

    async def test_lost_transition_issues_nothing(
        self, use_case, mock_membership_repo, mock_account_repo, mock_welfare_issuer
    ):
        """
        Given another confirm completed the purchase between lock and update
        When the conditional transition matches no row
        Then neither the tier nor welfare codes are touched
        """
        mock_membership_repo.get_by_reference = AsyncMock(
            side_effect=[_membership(), _membership(), _membership(PaymentStatus.SUCCEEDED)]
        )
        mock_membership_repo.complete_pending = AsyncMock(return_value=False)

        result = await use_case.execute("pi_m")

        assert result.value.status == "succeeded"
        mock_account_repo.update_membership.assert_not_called()
        mock_welfare_issuer.execute.assert_not_called()

    async def test_failed_welfare_codes_are_counted(self, use_case, mock_membership_repo, mock_welfare_issuer):
        from libs.result import Error

        mock_membership_repo.get_by_reference = AsyncMock(
            side_effect=[
                _membership(tier=Tier.SHAREHOLDER),
                _membership(tier=Tier.SHAREHOLDER),
                _membership(PaymentStatus.SUCCEEDED, tier=Tier.SHAREHOLDER),
            ]
        )
        mock_welfare_issuer.execute = AsyncMock(return_value=Return.err(Error(code="MINT_FAILED", message="down")))

        result = await use_case.execute("pi_m")

        assert result.is_ok()
        assert result.value.welfare_codes_issued == 0
        assert result.value.welfare_codes_failed == 1


def _card(status=PaymentStatus.PENDING):
    return MonthlyCard(
        id=3, account_id=1, payment_reference="pi_card", plan_type=MonthlyCardPlan.ONE_TIME,
        amount=2000, status=status,
    )


@pytest.fixture
def mock_card_repo():
    repo = MagicMock()
    repo.get_by_reference = AsyncMock(return_value=None)
    repo.complete_pending = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def card_use_case(
    mock_uow, mock_account_repo, mock_recharge_repo, mock_membership_repo,
    mock_ledger, mock_payment_gateway, mock_welfare_issuer, mock_card_repo,
):
    return ConfirmPayment(
        mock_uow,
        mock_account_repo,
        mock_recharge_repo,
        mock_membership_repo,
        mock_ledger,
        mock_payment_gateway,
        welfare_issuer=mock_welfare_issuer,
        retry_policy=RetryPolicy(max_attempts=1, base_backoff_seconds=0),
        card_repo=mock_card_repo,
    )


@pytest.mark.asyncio
class TestConfirmMonthlyCard:

    async def test_success_starts_thirty_day_card(self, card_use_case, mock_uow, mock_card_repo, mock_ledger):
        """
        Given a pending monthly card purchase
        When the payment succeeds
        Then the card runs 30 days from now and nothing touches the ledger
        """
        settled = _card(PaymentStatus.SUCCEEDED)
        mock_card_repo.get_by_reference = AsyncMock(side_effect=[_card(), _card(), settled])

        result = await card_use_case.execute("pi_card")

        assert result.value.kind == "monthly_card"
        assert result.value.plan_type == "one_time"
        reference, status, _, now = mock_card_repo.complete_pending.call_args.args
        kwargs = mock_card_repo.complete_pending.call_args.kwargs
        assert (reference, status) == ("pi_card", PaymentStatus.SUCCEEDED)
        assert kwargs["starts_at"] == now
        assert kwargs["ends_at"] - kwargs["starts_at"] == timedelta(days=30)
        mock_ledger.apply.assert_not_called()
        mock_uow.commit.assert_called_once()

    async def test_failed_card_has_no_period(self, card_use_case, mock_card_repo):
        mock_card_repo.get_by_reference = AsyncMock(
            side_effect=[_card(), _card(), _card(PaymentStatus.FAILED)]
        )

        result = await card_use_case.execute("pi_card", delivered_status=PaymentStatus.FAILED)

        assert result.value.status == "failed"
        kwargs = mock_card_repo.complete_pending.call_args.kwargs
        assert kwargs["starts_at"] is None
        assert kwargs["ends_at"] is None

    async def test_lost_transition_commits_nothing(self, card_use_case, mock_uow, mock_card_repo):
        mock_card_repo.get_by_reference = AsyncMock(
            side_effect=[_card(), _card(), _card(PaymentStatus.SUCCEEDED)]
        )
        mock_card_repo.complete_pending = AsyncMock(return_value=False)

        result = await card_use_case.execute("pi_card")

        assert result.value.status == "succeeded"
        mock_uow.commit.assert_not_called()
        mock_uow.rollback.assert_called_once()

    async def test_card_lookup_skipped_without_card_repo(self, use_case):
        result = await use_case.execute("pi_card")

        assert result.error.code == "PAYMENT_NOT_FOUND"
