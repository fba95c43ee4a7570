"""Unit tests for CodeMinter"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from loyalty.app.services.code_minter import CodeMinter, generate_six_digit_code
from loyalty.app.services.retry import RetryPolicy
from loyalty.domain.errors import ConflictError, MintFailed, UpstreamUnavailable


@pytest.fixture
def mock_gateway():
    gateway = MagicMock()
    gateway.mint_discount_code = AsyncMock(return_value="ext-1")
    return gateway


@pytest.fixture
def mock_discount_code_repo():
    repo = MagicMock()
    repo.code_exists = AsyncMock(return_value=False)
    return repo


@pytest.fixture
def minter(mock_gateway, mock_discount_code_repo):
    return CodeMinter(
        mock_gateway,
        mock_discount_code_repo,
        RetryPolicy(max_attempts=3, base_backoff_seconds=0),
    )


def test_generated_codes_are_six_digits():
    for _ in range(50):
        code = generate_six_digit_code()
        assert len(code) == 6
        assert code.isdigit()


@pytest.mark.asyncio
class TestCodeMinter:

    async def test_generate_skips_taken_codes(self, minter, mock_discount_code_repo):
        mock_discount_code_repo.code_exists = AsyncMock(side_effect=[True, True, False])

        code = await minter.generate_code()

        assert len(code) == 6
        assert mock_discount_code_repo.code_exists.call_count == 3

    async def test_generate_gives_up(self, minter, mock_discount_code_repo):
        mock_discount_code_repo.code_exists = AsyncMock(return_value=True)

        with pytest.raises(ConflictError) as exc_info:
            await minter.generate_code()

        assert exc_info.value.code == "CODE_GENERATION_FAILED"

    async def test_reserve_stages_claim_for_account(self, minter, mock_discount_code_repo, mock_gateway):
        mock_discount_code_repo.reserve = AsyncMock(side_effect=lambda reservation: reservation)

        await minter.reserve("654321", 7)

        reservation = mock_discount_code_repo.reserve.call_args.args[0]
        assert reservation.code == "654321"
        assert reservation.account_id == 7
        mock_gateway.mint_discount_code.assert_not_called()

    async def test_mint_returns_external_id(self, minter, mock_gateway):
        external_id = await minter.mint("123456", 500, 1)

        assert external_id == "ext-1"
        mock_gateway.mint_discount_code.assert_called_once_with("123456", 500, 1)

    async def test_mint_retries_transient_failure(self, minter, mock_gateway):
        mock_gateway.mint_discount_code = AsyncMock(
            side_effect=[UpstreamUnavailable("timeout"), "ext-2"]
        )

        assert await minter.mint("123456", 500, 1) == "ext-2"
        assert mock_gateway.mint_discount_code.call_count == 2

    async def test_mint_failure_after_retries(self, minter, mock_gateway):
        mock_gateway.mint_discount_code = AsyncMock(side_effect=UpstreamUnavailable("down"))

        with pytest.raises(MintFailed):
            await minter.mint("123456", 500, 1)

        assert mock_gateway.mint_discount_code.call_count == 3
