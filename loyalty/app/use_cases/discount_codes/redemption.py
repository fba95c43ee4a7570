"""Shared redemption flow

A redemption is two separately committed steps: the ledger debit together
with the code reservation, then the upstream mint plus the local DiscountCode
row. The debit is never rolled back once committed; a failure in the second
step is a PartialRedemptionFailure that an operator settles with
ReverseRedemption.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.ledger_engine import LedgerEngine
from loyalty.app.services.code_minter import CodeMinter
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import CodeType, DiscountCode
from loyalty.domain.errors import ConflictError, DomainError, PartialRedemptionFailure, ValidationError
from loyalty.domain.ledger_transaction import TransactionKind
from loyalty.domain.rewards import MAX_EXPIRE_MONTHS, code_expires_at
from .dtos import RedeemCommandDTO, RedemptionResponseDTO
from .mapping import to_discount_code_dto

logger = logging.getLogger(__name__)


def validate_expire_months(expire_months: int) -> None:
    if not 1 <= expire_months <= MAX_EXPIRE_MONTHS:
        raise ValidationError(
            f"expire_months must be between 1 and {MAX_EXPIRE_MONTHS}, got {expire_months}",
            code="INVALID_EXPIRE_MONTHS",
        )


class Redemption:
    """
    Template for paid redemptions

    Subclasses price the discount as (balance cost, stamps cost) and pick the
    code type.
    """

    code_type: CodeType = CodeType.SWEETS_CREDITS_REWARD
    failure_code = "REDEEM_FAILED"

    def __init__(
        self,
        uow: UnitOfWork,
        ledger: LedgerEngine,
        minter: CodeMinter,
        discount_code_repo: DiscountCodeRepository,
        notifier: Optional[NotificationService] = None,
    ):
        self.uow = uow
        self.ledger = ledger
        self.minter = minter
        self.discount_code_repo = discount_code_repo
        self.notifier = notifier

    def cost(self, discount_amount: int) -> Tuple[int, int]:
        raise NotImplementedError

    async def execute(self, command: RedeemCommandDTO) -> Result[RedemptionResponseDTO]:
        # Step 1: debit, reserve the code and commit
        try:
            validate_expire_months(command.expire_months)
            balance_cost, stamps_cost = self.cost(command.discount_amount)
            code = await self.minter.generate_code()

            transaction = await self.ledger.apply(
                command.account_id,
                delta_balance=-balance_cost,
                delta_stamps=-stamps_cost,
                kind=TransactionKind.REDEEM,
                related_discount_code=code,
                description=f"Redeem {self.code_type.value} code worth {command.discount_amount}",
            )
            await self.minter.reserve(code, command.account_id)
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except IntegrityError:
            await self.uow.rollback()
            return Return.err(
                to_error(ConflictError("Discount code was reserved concurrently", code="CODE_GENERATION_FAILED"))
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=self.failure_code,
                    message="Failed to redeem discount code",
                    reason=str(e),
                )
            )

        # Step 2: mint upstream and persist the code
        try:
            external_id = await self.minter.mint(code, command.discount_amount, command.expire_months)
            now = utcnow()
            discount_code = DiscountCode(
                account_id=command.account_id,
                code=code,
                discount_amount=command.discount_amount,
                code_type=self.code_type,
                expires_at=code_expires_at(now, command.expire_months),
                external_id=external_id,
                ledger_transaction_id=transaction.id,
                created_at=now,
                updated_at=now,
            )
            created = await self.discount_code_repo.create(discount_code)
            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            reason = e.message if isinstance(e, DomainError) else str(e)
            failure = PartialRedemptionFailure(transaction.id, command.account_id, code, reason)
            logger.error(failure.message)
            if self.notifier:
                await self.notifier.send_alert("partial_redemption", failure.message, failure.details)
            return Return.err(to_error(failure))

        logger.info(
            f"Account {command.account_id} redeemed code {code} "
            f"(transaction {transaction.id}, balance -{balance_cost}, stamps -{stamps_cost})"
        )
        return Return.ok(
            RedemptionResponseDTO(
                discount_code=to_discount_code_dto(created),
                ledger_transaction_id=transaction.id,
                balance_spent=balance_cost,
                stamps_spent=stamps_cost,
                balance_after=transaction.balance_after,
                stamps_after=transaction.stamps_after,
            )
        )
