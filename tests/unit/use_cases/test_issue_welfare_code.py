"""Unit tests for IssueWelfareCode use case"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import IntegrityError

from loyalty.app.use_cases.discount_codes import IssueWelfareCode
from loyalty.domain.account import Account
from loyalty.domain.discount_code import CodeType
from loyalty.domain.errors import MintFailed


@pytest.fixture
def mock_account_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=Account(id=1, member_code="1000000001"))
    return repo


@pytest.fixture
def mock_minter():
    minter = MagicMock()
    minter.generate_code = AsyncMock(return_value="222333")
    minter.reserve = AsyncMock()
    minter.mint = AsyncMock(return_value=None)
    return minter


@pytest.fixture
def mock_discount_code_repo():
    repo = MagicMock()

    async def create(discount_code):
        discount_code.id = 3
        return discount_code

    repo.create = AsyncMock(side_effect=create)
    return repo


@pytest.fixture
def use_case(mock_uow, mock_account_repo, mock_minter, mock_discount_code_repo):
    return IssueWelfareCode(mock_uow, mock_account_repo, mock_minter, mock_discount_code_repo)


@pytest.mark.asyncio
class TestIssueWelfareCode:

    async def test_issue_success(self, use_case, mock_uow, mock_minter, mock_discount_code_repo):
        """
        Given an existing account
        When a shareholder welfare code is issued
        Then the code is reserved, minted and stored without a ledger transaction
        """
        result = await use_case.execute(1, 800, CodeType.SHAREHOLDER_REWARD, expire_months=1)

        assert result.is_ok()
        assert result.value.code == "222333"
        assert result.value.code_type == "shareholder_reward"
        assert result.value.ledger_transaction_id is None
        mock_minter.reserve.assert_called_once_with("222333", 1)
        mock_minter.mint.assert_called_once_with("222333", 800, 1)
        assert mock_uow.commit.call_count == 2

    async def test_code_type_from_string(self, use_case):
        result = await use_case.execute(1, 300, "super_shareholder_reward")

        assert result.is_ok()
        assert result.value.code_type == "super_shareholder_reward"

    async def test_unknown_code_type(self, use_case, mock_minter):
        result = await use_case.execute(1, 300, "birthday")

        assert result.error.code == "INVALID_CODE_TYPE"
        mock_minter.mint.assert_not_called()

    async def test_unknown_account(self, use_case, mock_account_repo, mock_minter):
        mock_account_repo.get_by_id = AsyncMock(return_value=None)

        result = await use_case.execute(9, 800, CodeType.SHAREHOLDER_REWARD)

        assert result.error.code == "ACCOUNT_NOT_FOUND"
        mock_minter.mint.assert_not_called()

    async def test_mint_failure_keeps_only_the_reservation(
        self, use_case, mock_uow, mock_minter, mock_discount_code_repo
    ):
        """
        Given the upstream platform keeps failing
        When a welfare code is issued
        Then the committed reservation stays but no discount code is stored
        """
        mock_minter.mint = AsyncMock(side_effect=MintFailed("upstream down"))

        result = await use_case.execute(1, 800, CodeType.SHAREHOLDER_REWARD)

        assert result.error.code == "MINT_FAILED"
        mock_minter.reserve.assert_called_once_with("222333", 1)
        mock_discount_code_repo.create.assert_not_called()
        mock_uow.commit.assert_called_once()
        mock_uow.rollback.assert_called_once()

    async def test_reservation_taken_concurrently(self, use_case, mock_uow, mock_minter):
        mock_minter.reserve = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("duplicate code")))

        result = await use_case.execute(1, 800, CodeType.SHAREHOLDER_REWARD)

        assert result.error.code == "CODE_GENERATION_FAILED"
        mock_minter.mint.assert_not_called()
        mock_uow.rollback.assert_called_once()
