"""RenewMonthlyCard Use Case

Extends a subscription monthly card when its recurring invoice is paid.
"""

import logging
from datetime import timedelta
from typing import Optional

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.repositories.payment_repository import MonthlyCardRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.base import utcnow
from loyalty.domain.errors import DomainError, ValidationError
from loyalty.domain.payment import MonthlyCardPlan
from loyalty.domain.rewards import MONTHLY_CARD_DAYS
from .dtos import MonthlyCardDTO
from .mapping import to_monthly_card_dto

logger = logging.getLogger(__name__)


class RenewMonthlyCard:
    """
    Use Case: Apply one paid subscription invoice to a monthly card

    Business Rules:
    1. The card is found by subscription id, or on the first renewal by the
       card's payment reference carried in the invoice metadata
    2. Each invoice extends the card once; redelivery is a no-op
    3. A card still running is extended from its end, a lapsed one from now
    """

    def __init__(self, uow: UnitOfWork, card_repo: MonthlyCardRepository):
        self.uow = uow
        self.card_repo = card_repo

    async def execute(
        self,
        subscription_reference: str,
        renewal_reference: str,
        card_reference: Optional[str] = None,
    ) -> Result[MonthlyCardDTO]:
        """
        Errors:
            MONTHLY_CARD_NOT_FOUND: Neither reference matches a card
            MONTHLY_CARD_NOT_SUBSCRIPTION: The card was bought once, not subscribed
        """
        try:
            card = await self.card_repo.get_by_subscription_reference(subscription_reference)
            if card is None and card_reference:
                card = await self.card_repo.get_by_reference(card_reference)
            if card is None:
                return Return.err(
                    Error(
                        code="MONTHLY_CARD_NOT_FOUND",
                        message=f"No monthly card for subscription {subscription_reference}",
                        details={"subscription_reference": subscription_reference},
                    )
                )
            if card.plan_type != MonthlyCardPlan.SUBSCRIPTION:
                raise ValidationError(
                    f"Monthly card {card.payment_reference} is not a subscription",
                    code="MONTHLY_CARD_NOT_SUBSCRIPTION",
                )
            if card.last_renewal_reference == renewal_reference:
                return Return.ok(to_monthly_card_dto(card))

            now = utcnow()
            base = card.ends_at if card.ends_at and card.ends_at > now else now
            extended = await self.card_repo.extend(
                card.id,
                renewal_reference,
                subscription_reference,
                base + timedelta(days=MONTHLY_CARD_DAYS),
                now,
            )
            if not extended:
                await self.uow.rollback()
                return Return.ok(to_monthly_card_dto(await self.card_repo.get_by_reference(card.payment_reference)))
            await self.uow.commit()
            renewed = await self.card_repo.get_by_reference(card.payment_reference)

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="RENEW_MONTHLY_CARD_FAILED",
                    message="Failed to renew monthly card",
                    reason=str(e),
                )
            )

        logger.info(
            f"Monthly card {renewed.payment_reference} renewed by {renewal_reference} until "
            f"{renewed.ends_at.isoformat()}"
        )
        return Return.ok(to_monthly_card_dto(renewed))
