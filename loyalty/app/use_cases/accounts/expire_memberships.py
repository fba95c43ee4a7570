"""ExpireMemberships Use Case

Downgrades paid members whose membership period has ended back to fan.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.domain.account import Tier
from loyalty.domain.base import utcnow
from .dtos import ExpireMembershipsResultDTO

logger = logging.getLogger(__name__)


class ExpireMemberships:
    """
    Use Case: Expire lapsed memberships

    Balance and stamps are untouched; only tier and expiry are cleared.
    Running it twice is harmless since downgraded accounts no longer match.
    """

    def __init__(self, uow: UnitOfWork, account_repo: AccountRepository):
        self.uow = uow
        self.account_repo = account_repo

    async def execute(self, now: Optional[datetime] = None) -> Result[ExpireMembershipsResultDTO]:
        now = now or utcnow()
        try:
            expired = await self.account_repo.list_expired_members(now)
            for account in expired:
                await self.account_repo.update_membership(account.id, Tier.FAN, None)
                logger.info(
                    f"Membership of account {account.id} expired "
                    f"(was {account.tier.value}, expires_at={account.membership_expires_at})"
                )
            await self.uow.commit()

            return Return.ok(
                ExpireMembershipsResultDTO(
                    expired_accounts=len(expired),
                    account_ids=[account.id for account in expired],
                )
            )
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Membership expiry failed: {str(e)}", exc_info=True)
            return Return.err(
                Error(
                    code="MEMBERSHIP_EXPIRY_FAILED",
                    message="Failed to expire memberships",
                    reason=str(e),
                )
            )
