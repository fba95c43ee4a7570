"""Unit tests for RedeemWithStamps and RedeemWithBalance use cases

Tests cover:
- Successful stamps redemption (debit, reserve, mint, persist)
- The code is reserved in the committed debit before it is minted
- Amounts outside the reward table
- Insufficient stamps (no mint attempted)
- Mint failure after the committed debit (partial redemption)
- Balance redemption pricing
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import IntegrityError

from loyalty.app.use_cases.discount_codes import RedeemCommandDTO, RedeemWithBalance, RedeemWithStamps
from loyalty.domain.errors import InsufficientFunds, MintFailed
from loyalty.domain.ledger_transaction import LedgerTransaction, TransactionKind


@pytest.fixture
def mock_ledger():
    ledger = MagicMock()

    async def apply(account_id, delta_balance=0, delta_stamps=0, kind=TransactionKind.EARN, **kwargs):
        return LedgerTransaction(
            id=55,
            account_id=account_id,
            kind=kind,
            balance_delta=delta_balance,
            stamps_delta=delta_stamps,
            balance_after=5000 + delta_balance,
            stamps_after=1500 + delta_stamps,
            related_discount_code=kwargs.get("related_discount_code"),
        )

    ledger.apply = AsyncMock(side_effect=apply)
    return ledger


@pytest.fixture
def mock_minter():
    minter = MagicMock()
    minter.generate_code = AsyncMock(return_value="123456")
    minter.reserve = AsyncMock()
    minter.mint = AsyncMock(return_value="ext-1")
    return minter


@pytest.fixture
def mock_discount_code_repo():
    repo = MagicMock()

    async def create(discount_code):
        discount_code.id = 9
        return discount_code

    repo.create = AsyncMock(side_effect=create)
    return repo


@pytest.fixture
def mock_notifier():
    notifier = MagicMock()
    notifier.send_alert = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def use_case(mock_uow, mock_ledger, mock_minter, mock_discount_code_repo, mock_notifier):
    return RedeemWithStamps(mock_uow, mock_ledger, mock_minter, mock_discount_code_repo, mock_notifier)


@pytest.mark.asyncio
class TestRedeemWithStamps:

    async def test_redeem_success(self, use_case, mock_uow, mock_ledger, mock_minter, mock_discount_code_repo):
        """
        Given an account with 1500 stamps
        When a $5 code is redeemed
        Then 1000 stamps are debited, the code is minted and persisted, and both steps commit
        """
        # Act
        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=500, expire_months=2))

        # Assert
        assert result.is_ok()
        response = result.value
        assert response.stamps_spent == 1000
        assert response.balance_spent == 0
        assert response.stamps_after == 500
        assert response.ledger_transaction_id == 55
        assert response.discount_code.code == "123456"
        assert response.discount_code.status == "issued"
        assert response.discount_code.ledger_transaction_id == 55

        apply_kwargs = mock_ledger.apply.call_args.kwargs
        assert apply_kwargs["delta_stamps"] == -1000
        assert apply_kwargs["kind"] == TransactionKind.REDEEM
        assert apply_kwargs["related_discount_code"] == "123456"
        mock_minter.mint.assert_called_once_with("123456", 500, 2)
        assert mock_uow.commit.call_count == 2

    async def test_amount_not_in_reward_table(self, use_case, mock_uow, mock_ledger):
        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=700))

        assert result.is_err()
        assert result.error.code == "INVALID_DISCOUNT_AMOUNT"
        mock_ledger.apply.assert_not_called()
        mock_uow.rollback.assert_called_once()

    async def test_expire_months_out_of_range(self, use_case, mock_ledger):
        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=500, expire_months=4))

        assert result.is_err()
        assert result.error.code == "INVALID_EXPIRE_MONTHS"
        mock_ledger.apply.assert_not_called()

    async def test_insufficient_stamps(self, use_case, mock_uow, mock_ledger, mock_minter):
        """
        Given the account has only 500 stamps
        When a $5 code is redeemed
        Then INSUFFICIENT_FUNDS is returned and nothing is minted
        """
        mock_ledger.apply = AsyncMock(side_effect=InsufficientFunds(1, 0, 500, 0, -1000))

        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=500))

        assert result.is_err()
        assert result.error.code == "INSUFFICIENT_FUNDS"
        mock_minter.mint.assert_not_called()
        mock_uow.commit.assert_not_called()
        mock_uow.rollback.assert_called_once()

    async def test_mint_failure_is_partial_redemption(
        self, use_case, mock_uow, mock_minter, mock_discount_code_repo, mock_notifier
    ):
        """
        Given the upstream platform keeps failing
        When a code is redeemed
        Then the committed debit stays, no code is stored, and an alert is raised
        """
        mock_minter.mint = AsyncMock(side_effect=MintFailed("upstream down"))

        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=500))

        assert result.is_err()
        assert result.error.code == "PARTIAL_REDEMPTION_FAILURE"
        assert result.error.details == {"ledger_transaction_id": 55, "account_id": 1, "code": "123456"}
        mock_uow.commit.assert_called_once()
        mock_discount_code_repo.create.assert_not_called()
        mock_notifier.send_alert.assert_called_once()
        assert mock_notifier.send_alert.call_args.args[0] == "partial_redemption"

    async def test_code_reserved_before_mint(self, use_case, mock_uow, mock_ledger, mock_minter):
        """
        Given a redemption in progress
        When the code is minted upstream
        Then its reservation was already committed together with the debit
        """
        calls = []
        debit = mock_ledger.apply.side_effect

        async def apply(*args, **kwargs):
            calls.append("debit")
            return await debit(*args, **kwargs)

        mock_ledger.apply.side_effect = apply
        mock_minter.reserve.side_effect = lambda code, account_id: calls.append(f"reserve:{code}:{account_id}")
        mock_uow.commit.side_effect = lambda: calls.append("commit")
        mock_minter.mint.side_effect = lambda code, amount, months: calls.append("mint") or "ext-1"

        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=500))

        assert result.is_ok()
        assert calls == ["debit", "reserve:123456:1", "commit", "mint", "commit"]

    async def test_reservation_conflict_rolls_back_debit(self, use_case, mock_uow, mock_minter):
        mock_minter.reserve = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("duplicate code")))

        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=500))

        assert result.error.code == "CODE_GENERATION_FAILED"
        mock_minter.mint.assert_not_called()
        mock_uow.commit.assert_not_called()
        mock_uow.rollback.assert_called_once()


@pytest.mark.asyncio
class TestRedeemWithBalance:

    async def test_debits_balance_one_to_one(
        self, mock_uow, mock_ledger, mock_minter, mock_discount_code_repo
    ):
        use_case = RedeemWithBalance(mock_uow, mock_ledger, mock_minter, mock_discount_code_repo)

        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=1000))

        assert result.is_ok()
        assert result.value.balance_spent == 1000
        assert result.value.stamps_spent == 0
        assert result.value.balance_after == 4000
        assert mock_ledger.apply.call_args.kwargs["delta_balance"] == -1000

    async def test_rejects_partial_dollars(self, mock_uow, mock_ledger, mock_minter, mock_discount_code_repo):
        use_case = RedeemWithBalance(mock_uow, mock_ledger, mock_minter, mock_discount_code_repo)

        result = await use_case.execute(RedeemCommandDTO(account_id=1, discount_amount=150))

        assert result.is_err()
        assert result.error.code == "INVALID_DISCOUNT_AMOUNT"
