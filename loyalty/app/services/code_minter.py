"""Discount code minting

Generates a locally unique code string, reserves it in the caller's
transaction and creates it on the point-of-sale platform, retrying transient
upstream failures. Callers commit the reservation before minting.
"""

import logging
import random
from typing import Optional

from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.services.retry import RetryPolicy, call_with_retry
from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import CodeReservation
from loyalty.domain.errors import ConflictError, MintFailed, UpstreamUnavailable

logger = logging.getLogger(__name__)

MAX_CODE_GENERATION_TRIES = 10


def generate_six_digit_code() -> str:
    return f"{random.randint(100000, 999999):06d}"


class CodeMinter:

    def __init__(
        self,
        gateway: OrderGateway,
        discount_code_repo: DiscountCodeRepository,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.gateway = gateway
        self.discount_code_repo = discount_code_repo
        self.retry_policy = retry_policy or RetryPolicy()

    async def generate_code(self) -> str:
        """
        Raises:
            ConflictError: No free code found within MAX_CODE_GENERATION_TRIES attempts
        """
        for _ in range(MAX_CODE_GENERATION_TRIES):
            candidate = generate_six_digit_code()
            if not await self.discount_code_repo.code_exists(candidate):
                return candidate
        raise ConflictError("Failed to generate unique discount code", code="CODE_GENERATION_FAILED")

    async def reserve(self, code: str, account_id: int) -> None:
        """Claim a generated code; a concurrent claim of the same code fails with IntegrityError"""
        await self.discount_code_repo.reserve(CodeReservation(code=code, account_id=account_id, reserved_at=utcnow()))

    async def mint(self, code: str, amount: int, expire_months: int) -> Optional[str]:
        """
        Create the code upstream

        Returns:
            External identifier reported by the platform, if any

        Raises:
            MintFailed: Upstream kept failing after all retry attempts
        """
        try:
            external_id = await call_with_retry(
                lambda: self.gateway.mint_discount_code(code, amount, expire_months),
                self.retry_policy,
                f"Mint discount code {code}",
            )
        except UpstreamUnavailable as e:
            raise MintFailed(f"Minting discount code {code} failed: {e.message}") from e

        logger.info(f"Minted discount code {code}: amount={amount}, expire_months={expire_months}")
        return external_id
