"""ReverseRedemption Use Case

Operator-triggered compensating credit for a redemption whose debit committed
but whose discount code was never delivered.
"""

import logging

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.ledger_engine import LedgerEngine
from loyalty.app.repositories.ledger_transaction_repository import LedgerTransactionRepository
from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import ConflictError, DomainError, ValidationError
from loyalty.domain.ledger_transaction import TransactionKind
from .dtos import ReverseRedemptionCommandDTO, ReversalResponseDTO

logger = logging.getLogger(__name__)


class ReverseRedemption:
    """
    Use Case: Reverse an undelivered redemption

    Business Rules:
    1. Only redeem transactions can be reversed
    2. A redemption that produced a persisted discount code cannot be reversed
    3. The credit restores exactly the debited balance and stamps
    4. Idempotency key reversal:<id> makes repeated calls return the same reversal
    """

    def __init__(
        self,
        uow: UnitOfWork,
        ledger: LedgerEngine,
        transaction_repo: LedgerTransactionRepository,
        discount_code_repo: DiscountCodeRepository,
    ):
        self.uow = uow
        self.ledger = ledger
        self.transaction_repo = transaction_repo
        self.discount_code_repo = discount_code_repo

    async def execute(self, command: ReverseRedemptionCommandDTO) -> Result[ReversalResponseDTO]:
        try:
            original = await self.transaction_repo.get_by_id(command.ledger_transaction_id)
            if not original:
                return Return.err(
                    Error(
                        code="TRANSACTION_NOT_FOUND",
                        message=f"Ledger transaction {command.ledger_transaction_id} not found",
                    )
                )

            if original.kind != TransactionKind.REDEEM:
                raise ValidationError(
                    f"Transaction {original.id} is not a redemption",
                    code="NOT_A_REDEMPTION",
                )

            delivered = await self.discount_code_repo.get_by_ledger_transaction_id(original.id)
            if delivered:
                raise ConflictError(
                    f"Redemption {original.id} delivered code {delivered.code}",
                    code="REDEMPTION_DELIVERED",
                    details={"code": delivered.code},
                )

            reversal = await self.ledger.apply(
                original.account_id,
                delta_balance=-original.balance_delta,
                delta_stamps=-original.stamps_delta,
                kind=TransactionKind.EARN,
                related_discount_code=original.related_discount_code,
                description=f"Reversal of redemption {original.id}: {command.reason}",
                idempotency_key=f"reversal:{original.id}",
            )
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="REVERSE_REDEMPTION_FAILED",
                    message="Failed to reverse redemption",
                    reason=str(e),
                )
            )

        logger.info(f"Reversed redemption {original.id} with transaction {reversal.id}: {command.reason}")
        return Return.ok(
            ReversalResponseDTO(
                reversal_transaction_id=reversal.id,
                original_transaction_id=original.id,
                account_id=original.account_id,
                balance_restored=reversal.balance_delta,
                stamps_restored=reversal.stamps_delta,
                balance_after=reversal.balance_after,
                stamps_after=reversal.stamps_after,
            )
        )
