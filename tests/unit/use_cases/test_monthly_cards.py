"""Unit tests for monthly card use cases

Tests cover:
- Purchase intent with one running card per account
- Subscription renewal applied once per invoice
- Daily coupons claimed before they are issued
"""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from libs.result import Error, Return
from loyalty.app.services.payment_gateway import PaymentIntentHandle
from loyalty.app.use_cases.payments import (
    CreateMonthlyCardCommandDTO,
    CreateMonthlyCardIntent,
    ListMonthlyCards,
    RenewMonthlyCard,
)
from loyalty.app.use_cases.rewards import GrantMonthlyCardCoupons
from loyalty.domain.account import Account
from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import CodeType
from loyalty.domain.payment import MonthlyCard, MonthlyCardPlan, PaymentStatus


def _card(
    card_id=5,
    plan=MonthlyCardPlan.SUBSCRIPTION,
    status=PaymentStatus.SUCCEEDED,
    ends_at=None,
    last_renewal_reference=None,
    last_coupon_granted_on=None,
):
    return MonthlyCard(
        id=card_id, account_id=1, payment_reference=f"pi_card_{card_id}", plan_type=plan, amount=2000,
        status=status, ends_at=ends_at, last_renewal_reference=last_renewal_reference,
        last_coupon_granted_on=last_coupon_granted_on,
    )


async def _create(record):
    record.id = 9
    return record


@pytest.fixture
def mock_account_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=Account(id=1, member_code="1000000001"))
    return repo


@pytest.fixture
def mock_card_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=_create)
    repo.get_active_for_account = AsyncMock(return_value=None)
    repo.get_by_subscription_reference = AsyncMock(return_value=None)
    repo.get_by_reference = AsyncMock(return_value=None)
    repo.get_by_account_id = AsyncMock(return_value=[])
    repo.extend = AsyncMock(return_value=True)
    repo.list_active = AsyncMock(return_value=[])
    repo.claim_coupon_day = AsyncMock(return_value=True)
    repo.release_coupon_day = AsyncMock()
    return repo


@pytest.fixture
def mock_payment_gateway():
    gateway = MagicMock()
    gateway.create_payment_intent = AsyncMock(
        return_value=PaymentIntentHandle(reference="pi_card", client_secret="pi_card_secret")
    )
    return gateway


@pytest.mark.asyncio
class TestCreateMonthlyCardIntent:

    async def test_creates_pending_card(self, mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway):
        use_case = CreateMonthlyCardIntent(mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway)

        result = await use_case.execute(CreateMonthlyCardCommandDTO(account_id=1, plan_type="subscription"))

        assert result.value.payment_reference == "pi_card"
        assert result.value.total_amount == 2000
        assert result.value.plan_type == "subscription"
        assert result.value.status == "pending"
        metadata = mock_payment_gateway.create_payment_intent.call_args.kwargs["metadata"]
        assert metadata["kind"] == "monthly_card"
        mock_uow.commit.assert_called_once()

    async def test_running_card_conflicts(self, mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway):
        """
        Given a card that runs for another ten days
        When a second card is requested
        Then it is refused before any payment is created
        """
        mock_card_repo.get_active_for_account = AsyncMock(
            return_value=_card(ends_at=utcnow() + timedelta(days=10))
        )
        use_case = CreateMonthlyCardIntent(mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway)

        result = await use_case.execute(CreateMonthlyCardCommandDTO(account_id=1))

        assert result.error.code == "MONTHLY_CARD_ACTIVE"
        assert result.error.details == {"payment_reference": "pi_card_5"}
        mock_payment_gateway.create_payment_intent.assert_not_called()

    async def test_unknown_plan(self, mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway):
        use_case = CreateMonthlyCardIntent(mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway)

        result = await use_case.execute(CreateMonthlyCardCommandDTO(account_id=1, plan_type="weekly"))

        assert result.error.code == "INVALID_PLAN_TYPE"

    async def test_unknown_account(self, mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway):
        mock_account_repo.get_by_id = AsyncMock(return_value=None)
        use_case = CreateMonthlyCardIntent(mock_uow, mock_account_repo, mock_card_repo, mock_payment_gateway)

        result = await use_case.execute(CreateMonthlyCardCommandDTO(account_id=7))

        assert result.error.code == "ACCOUNT_NOT_FOUND"


@pytest.mark.asyncio
class TestRenewMonthlyCard:

    async def test_running_card_extended_from_its_end(self, mock_uow, mock_card_repo):
        """
        Given a subscription card ending in five days
        When invoice in_2 is paid
        Then the card ends 35 days from now
        """
        ends_at = utcnow() + timedelta(days=5)
        card = _card(ends_at=ends_at)
        mock_card_repo.get_by_subscription_reference = AsyncMock(return_value=card)
        mock_card_repo.get_by_reference = AsyncMock(return_value=_card(ends_at=ends_at + timedelta(days=30)))

        result = await RenewMonthlyCard(mock_uow, mock_card_repo).execute("sub_1", "in_2")

        assert result.is_ok()
        card_id, renewal, subscription, new_end, _ = mock_card_repo.extend.call_args.args
        assert (card_id, renewal, subscription) == (5, "in_2", "sub_1")
        assert new_end == ends_at + timedelta(days=30)
        mock_uow.commit.assert_called_once()

    async def test_lapsed_card_extended_from_now(self, mock_uow, mock_card_repo):
        mock_card_repo.get_by_subscription_reference = AsyncMock(
            return_value=_card(ends_at=datetime(2020, 1, 1))
        )
        mock_card_repo.get_by_reference = AsyncMock(return_value=_card(ends_at=utcnow() + timedelta(days=30)))

        await RenewMonthlyCard(mock_uow, mock_card_repo).execute("sub_1", "in_2")

        new_end = mock_card_repo.extend.call_args.args[3]
        assert new_end > utcnow() + timedelta(days=29)

    async def test_first_renewal_links_by_card_reference(self, mock_uow, mock_card_repo):
        card = _card(ends_at=utcnow())
        mock_card_repo.get_by_reference = AsyncMock(return_value=card)

        result = await RenewMonthlyCard(mock_uow, mock_card_repo).execute(
            "sub_new", "in_1", card_reference="pi_card_5"
        )

        assert result.is_ok()
        assert mock_card_repo.extend.call_args.args[2] == "sub_new"

    async def test_redelivered_invoice_is_a_no_op(self, mock_uow, mock_card_repo):
        mock_card_repo.get_by_subscription_reference = AsyncMock(
            return_value=_card(ends_at=utcnow(), last_renewal_reference="in_2")
        )

        result = await RenewMonthlyCard(mock_uow, mock_card_repo).execute("sub_1", "in_2")

        assert result.is_ok()
        mock_card_repo.extend.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_unknown_subscription(self, mock_uow, mock_card_repo):
        result = await RenewMonthlyCard(mock_uow, mock_card_repo).execute("sub_x", "in_1")

        assert result.error.code == "MONTHLY_CARD_NOT_FOUND"
        assert result.error.details == {"subscription_reference": "sub_x"}

    async def test_one_time_card_is_not_renewed(self, mock_uow, mock_card_repo):
        mock_card_repo.get_by_subscription_reference = AsyncMock(
            return_value=_card(plan=MonthlyCardPlan.ONE_TIME, ends_at=utcnow())
        )

        result = await RenewMonthlyCard(mock_uow, mock_card_repo).execute("sub_1", "in_1")

        assert result.error.code == "MONTHLY_CARD_NOT_SUBSCRIPTION"
        mock_card_repo.extend.assert_not_called()


@pytest.mark.asyncio
class TestListMonthlyCards:

    async def test_unknown_account_is_not_found(self, mock_account_repo, mock_card_repo):
        mock_account_repo.get_by_id = AsyncMock(return_value=None)

        result = await ListMonthlyCards(mock_account_repo, mock_card_repo).execute(7)

        assert result.error.code == "ACCOUNT_NOT_FOUND"

    async def test_lists_cards_with_active_flag(self, mock_account_repo, mock_card_repo):
        mock_card_repo.get_by_account_id = AsyncMock(
            return_value=[_card(ends_at=utcnow() + timedelta(days=3)), _card(card_id=4, ends_at=datetime(2020, 1, 1))]
        )

        result = await ListMonthlyCards(mock_account_repo, mock_card_repo).execute(1)

        assert [card.active for card in result.value.monthly_cards] == [True, False]


@pytest.fixture
def mock_welfare_issuer():
    issuer = MagicMock()
    issuer.execute = AsyncMock(return_value=Return.ok(MagicMock(code="550550")))
    return issuer


@pytest.mark.asyncio
class TestGrantMonthlyCardCoupons:

    async def test_each_running_card_gets_todays_coupon(self, mock_uow, mock_card_repo, mock_welfare_issuer):
        """
        Given two running cards
        When today's coupons are granted
        Then each card's day is claimed and committed before a $5.50 code is issued
        """
        now = datetime(2025, 6, 1, 9, 0)
        mock_card_repo.list_active = AsyncMock(
            return_value=[_card(card_id=1, ends_at=now + timedelta(days=3)), _card(card_id=2, ends_at=now)]
        )
        calls = []
        mock_card_repo.claim_coupon_day = AsyncMock(side_effect=lambda *args: calls.append("claim") or True)
        mock_uow.commit = AsyncMock(side_effect=lambda: calls.append("commit"))
        mock_welfare_issuer.execute = AsyncMock(
            side_effect=lambda *args: calls.append("issue") or Return.ok(MagicMock(code="550550"))
        )

        result = await GrantMonthlyCardCoupons(mock_uow, mock_card_repo, mock_welfare_issuer).execute(now)

        assert result.value.coupons_granted == 2
        assert result.value.day == date(2025, 6, 1)
        assert calls == ["claim", "commit", "issue", "claim", "commit", "issue"]
        assert mock_welfare_issuer.execute.call_args.args == (1, 550, CodeType.SWEETS_CREDITS_REWARD, 1)

    async def test_day_already_claimed_is_skipped(self, mock_uow, mock_card_repo, mock_welfare_issuer):
        now = datetime(2025, 6, 1, 9, 0)
        mock_card_repo.list_active = AsyncMock(return_value=[_card(ends_at=now, last_coupon_granted_on=now.date())])
        mock_card_repo.claim_coupon_day = AsyncMock(return_value=False)

        result = await GrantMonthlyCardCoupons(mock_uow, mock_card_repo, mock_welfare_issuer).execute(now)

        assert result.value.already_granted == 1
        mock_welfare_issuer.execute.assert_not_called()

    async def test_failed_issue_releases_the_day(self, mock_uow, mock_card_repo, mock_welfare_issuer):
        """
        Given the code platform is down
        When the coupon cannot be issued
        Then the claim is put back to the previous day so the next run retries
        """
        now = datetime(2025, 6, 1, 9, 0)
        yesterday = date(2025, 5, 31)
        mock_card_repo.list_active = AsyncMock(return_value=[_card(ends_at=now, last_coupon_granted_on=yesterday)])
        mock_welfare_issuer.execute = AsyncMock(return_value=Return.err(Error(code="MINT_FAILED", message="down")))

        result = await GrantMonthlyCardCoupons(mock_uow, mock_card_repo, mock_welfare_issuer).execute(now)

        assert result.value.failures == 1
        mock_card_repo.release_coupon_day.assert_called_once_with(5, date(2025, 6, 1), yesterday)
        assert mock_uow.commit.call_count == 2

    async def test_lookup_failure(self, mock_uow, mock_card_repo, mock_welfare_issuer):
        mock_card_repo.list_active = AsyncMock(side_effect=Exception("db down"))

        result = await GrantMonthlyCardCoupons(mock_uow, mock_card_repo, mock_welfare_issuer).execute()

        assert result.error.code == "MONTHLY_CARD_COUPONS_FAILED"
