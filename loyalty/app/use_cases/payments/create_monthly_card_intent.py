"""CreateMonthlyCardIntent Use Case

Starts a monthly card purchase.
"""

import logging

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.payment_gateway import PaymentGateway
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.payment_repository import MonthlyCardRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.base import utcnow
from loyalty.domain.errors import AccountNotFound, ConflictError, DomainError, ValidationError
from loyalty.domain.payment import MonthlyCard, MonthlyCardPlan
from loyalty.domain.rewards import MONTHLY_CARD_PRICE
from .dtos import CreateMonthlyCardCommandDTO, PaymentIntentResponseDTO

logger = logging.getLogger(__name__)


class CreateMonthlyCardIntent:
    """
    Use Case: Create a monthly card purchase

    A card costs $20 for 30 days. An account holds at most one running card;
    a new one can be bought once the current one has ended.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        card_repo: MonthlyCardRepository,
        payment_gateway: PaymentGateway,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.card_repo = card_repo
        self.payment_gateway = payment_gateway

    async def execute(self, command: CreateMonthlyCardCommandDTO) -> Result[PaymentIntentResponseDTO]:
        """
        Errors:
            INVALID_PLAN_TYPE: Not one_time or subscription
            ACCOUNT_NOT_FOUND: No such account
            MONTHLY_CARD_ACTIVE: The account already holds a running card
        """
        try:
            try:
                plan = MonthlyCardPlan(command.plan_type)
            except ValueError:
                raise ValidationError(f"Unknown plan type {command.plan_type}", code="INVALID_PLAN_TYPE")

            account = await self.account_repo.get_by_id(command.account_id)
            if not account:
                raise AccountNotFound(command.account_id)

            running = await self.card_repo.get_active_for_account(account.id, utcnow())
            if running:
                raise ConflictError(
                    f"Account {account.id} already holds a monthly card until {running.ends_at.isoformat()}",
                    code="MONTHLY_CARD_ACTIVE",
                    details={"payment_reference": running.payment_reference},
                )

            handle = await self.payment_gateway.create_payment_intent(
                MONTHLY_CARD_PRICE,
                metadata={"kind": "monthly_card", "account_id": str(account.id), "plan_type": plan.value},
                description=f"Monthly card ({plan.value}) for member {account.member_code}",
            )

            created = await self.card_repo.create(
                MonthlyCard(
                    account_id=account.id,
                    payment_reference=handle.reference,
                    plan_type=plan,
                    amount=MONTHLY_CARD_PRICE,
                    upstream_status=handle.upstream_status,
                )
            )
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CREATE_MONTHLY_CARD_FAILED",
                    message="Failed to create monthly card purchase",
                    reason=str(e),
                )
            )

        logger.info(
            f"Monthly card {created.payment_reference} ({plan.value}) created for account {created.account_id}"
        )
        return Return.ok(
            PaymentIntentResponseDTO(
                payment_reference=created.payment_reference,
                client_secret=handle.client_secret,
                account_id=created.account_id,
                amount=created.amount,
                total_amount=created.amount,
                plan_type=plan.value,
                status=created.status.value,
            )
        )
