"""Unit tests for MembershipExpiryWorker"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from libs.result import Error, Return
from loyalty.app.use_cases.accounts.dtos import ExpireMembershipsResultDTO
from loyalty.worker.membership_expiry import MembershipExpiryWorker


@pytest.fixture
def mock_session_factory():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock()
    return MagicMock(return_value=session)


@pytest.mark.asyncio
class TestMembershipExpiryWorker:

    @patch("loyalty.worker.membership_expiry.ExpireMemberships")
    @patch("loyalty.worker.membership_expiry.create_async_engine")
    @patch("loyalty.worker.membership_expiry.sessionmaker")
    async def test_run_once_returns_expired_accounts(
        self, mock_sessionmaker, mock_create_engine, mock_use_case_class, mock_session_factory
    ):
        mock_sessionmaker.return_value = mock_session_factory
        mock_use_case_class.return_value.execute = AsyncMock(
            return_value=Return.ok(ExpireMembershipsResultDTO(expired_accounts=2, account_ids=[1, 2]))
        )

        worker = MembershipExpiryWorker(db_uri="sqlite+aiosqlite:///test.db")
        result = await worker.run_once()

        assert result.expired_accounts == 2

    @patch("loyalty.worker.membership_expiry.ExpireMemberships")
    @patch("loyalty.worker.membership_expiry.create_async_engine")
    @patch("loyalty.worker.membership_expiry.sessionmaker")
    async def test_run_once_raises_on_failure(
        self, mock_sessionmaker, mock_create_engine, mock_use_case_class, mock_session_factory
    ):
        mock_sessionmaker.return_value = mock_session_factory
        mock_use_case_class.return_value.execute = AsyncMock(
            return_value=Return.err(Error(code="MEMBERSHIP_EXPIRY_FAILED", message="Database error"))
        )

        worker = MembershipExpiryWorker(db_uri="sqlite+aiosqlite:///test.db")

        with pytest.raises(RuntimeError, match="Database error"):
            await worker.run_once()
