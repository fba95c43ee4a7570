"""GrantMonthlyCardCoupons Use Case

Issues the daily welfare code every running monthly card is entitled to.
"""

import logging
from datetime import date, datetime
from typing import Optional

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.repositories.payment_repository import MonthlyCardRepository
from loyalty.app.use_cases.discount_codes.issue_welfare_code import IssueWelfareCode
from loyalty.domain.base import utcnow
from loyalty.domain.payment import MonthlyCard
from loyalty.domain.rewards import MONTHLY_CARD_DAILY_COUPON
from .dtos import MonthlyCardCouponsResultDTO

logger = logging.getLogger(__name__)


class GrantMonthlyCardCoupons:
    """
    Use Case: Grant today's monthly card coupons

    Business Rules:
    1. Every card with status succeeded and ends_at not yet passed earns one
       $5.50 sweets credit code per UTC day, valid for one month
    2. The day is claimed on the card and committed before the code is
       issued, so concurrent runs never issue twice
    3. A failed issue releases the claim so the next run retries the day
    """

    def __init__(self, uow: UnitOfWork, card_repo: MonthlyCardRepository, welfare_issuer: IssueWelfareCode):
        self.uow = uow
        self.card_repo = card_repo
        self.welfare_issuer = welfare_issuer

    async def execute(self, now: Optional[datetime] = None) -> Result[MonthlyCardCouponsResultDTO]:
        now = now or utcnow()
        today = now.date()
        result = MonthlyCardCouponsResultDTO(day=today)
        try:
            cards = await self.card_repo.list_active(now)
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Monthly card lookup for {today.isoformat()} failed: {str(e)}", exc_info=True)
            return Return.err(
                Error(
                    code="MONTHLY_CARD_COUPONS_FAILED",
                    message="Failed to look up running monthly cards",
                    reason=str(e),
                )
            )

        for card in cards:
            result.cards_checked += 1
            await self._grant(card, today, now, result)

        logger.info(
            f"Monthly card coupons for {today.isoformat()}: granted={result.coupons_granted}, "
            f"already={result.already_granted}, failures={result.failures}"
        )
        return Return.ok(result)

    async def _grant(self, card: MonthlyCard, today: date, now: datetime, result: MonthlyCardCouponsResultDTO) -> None:
        previous = card.last_coupon_granted_on
        try:
            claimed = await self.card_repo.claim_coupon_day(card.id, today, now)
            if not claimed:
                await self.uow.rollback()
                result.already_granted += 1
                return
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            result.failures += 1
            logger.error(f"Claiming coupon day for monthly card {card.id} failed: {str(e)}", exc_info=True)
            return

        code_type, amount, expire_months = MONTHLY_CARD_DAILY_COUPON
        issued = await self.welfare_issuer.execute(card.account_id, amount, code_type, expire_months)
        if issued.is_ok():
            result.coupons_granted += 1
            result.coupon_codes.append(issued.value.code)
            return

        result.failures += 1
        logger.warning(
            f"Monthly card {card.id} coupon for {today.isoformat()} not issued: {issued.error.code}; "
            f"releasing the day"
        )
        try:
            await self.card_repo.release_coupon_day(card.id, today, previous)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Releasing coupon day for monthly card {card.id} failed: {str(e)}", exc_info=True)
