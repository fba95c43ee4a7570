"""CreateRechargeIntent Use Case

Starts a balance top-up: creates the upstream payment and a pending
RechargeRecord holding the quoted bonus.
"""

import logging

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.payment_gateway import PaymentGateway
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.payment_repository import RechargeRecordRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound, DomainError, ValidationError
from loyalty.domain.payment import RechargeRecord
from loyalty.domain.rewards import RECHARGE_BONUS_TIERS, is_recharge_tier, recharge_bonus
from .dtos import CreateRechargeCommandDTO, PaymentIntentResponseDTO

logger = logging.getLogger(__name__)


class CreateRechargeIntent:
    """
    Use Case: Create a recharge payment

    Business Rules:
    1. amount within [min_amount, max_amount]
    2. Only tier amounts unless non-tier amounts are allowed (those get no bonus)
    3. Nothing touches the ledger until the payment is confirmed
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        recharge_repo: RechargeRecordRepository,
        payment_gateway: PaymentGateway,
        min_amount: int = 500,
        max_amount: int = 100000,
        allow_non_tier_amounts: bool = True,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.recharge_repo = recharge_repo
        self.payment_gateway = payment_gateway
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.allow_non_tier_amounts = allow_non_tier_amounts

    async def execute(self, command: CreateRechargeCommandDTO) -> Result[PaymentIntentResponseDTO]:
        try:
            self._validate_amount(command.amount)

            account = await self.account_repo.get_by_id(command.account_id)
            if not account:
                raise AccountNotFound(command.account_id)

            handle = await self.payment_gateway.create_payment_intent(
                command.amount,
                metadata={"kind": "recharge", "account_id": str(account.id)},
                description=f"Balance recharge for member {account.member_code}",
            )

            bonus = recharge_bonus(command.amount)
            record = RechargeRecord(
                account_id=account.id,
                payment_reference=handle.reference,
                amount=command.amount,
                bonus_amount=bonus,
                total_amount=command.amount + bonus,
                upstream_status=handle.upstream_status,
            )
            created = await self.recharge_repo.create(record)
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CREATE_RECHARGE_FAILED",
                    message="Failed to create recharge",
                    reason=str(e),
                )
            )

        logger.info(
            f"Recharge {created.payment_reference} created for account {created.account_id}: "
            f"amount={created.amount}, bonus={created.bonus_amount}"
        )
        return Return.ok(
            PaymentIntentResponseDTO(
                payment_reference=created.payment_reference,
                client_secret=handle.client_secret,
                account_id=created.account_id,
                amount=created.amount,
                bonus_amount=created.bonus_amount,
                total_amount=created.total_amount,
                status=created.status.value,
            )
        )

    def _validate_amount(self, amount: int) -> None:
        if not self.min_amount <= amount <= self.max_amount:
            raise ValidationError(
                f"Recharge amount must be between {self.min_amount} and {self.max_amount}, got {amount}",
                code="INVALID_RECHARGE_AMOUNT",
            )
        if not self.allow_non_tier_amounts and not is_recharge_tier(amount):
            raise ValidationError(
                f"Recharge amount {amount} is not one of the offered tiers",
                code="INVALID_RECHARGE_AMOUNT",
                details={"tiers": sorted(RECHARGE_BONUS_TIERS)},
            )
