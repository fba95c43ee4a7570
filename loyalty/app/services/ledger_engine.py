"""Ledger Engine

The single writer path for account balance and stamps. Every mutation is an
account row update plus an immutable LedgerTransaction, flushed in the
caller's database transaction; the caller commits through its UnitOfWork so
that the ledger entry lands together with whatever caused it (a recharge
status change, an ingested order).
"""

import logging
from typing import Optional

from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.ledger_transaction_repository import LedgerTransactionRepository
from loyalty.domain.errors import AccountNotFound, ConflictError, InsufficientFunds, ValidationError
from loyalty.domain.ledger_transaction import LedgerTransaction, TransactionKind

logger = logging.getLogger(__name__)

DEFAULT_MAX_CAS_ATTEMPTS = 5


class LedgerEngine:
    """
    Applies balance/stamps deltas to one account

    Business Rules:
    1. Idempotency: an existing idempotency_key returns the original transaction
    2. Non-negative: resulting balance and stamps must both be >= 0
    3. Serialization: SELECT FOR UPDATE where the database supports it, plus a
       compare-and-swap write that re-reads and retries when another writer
       changed the row in between
    4. balance_after/stamps_after snapshot the row exactly as written

    Flow:
    1. Check idempotency
    2. Read account (locked, fresh)
    3. Validate resulting balances
    4. Compare-and-swap balances (retry from 2 on contention)
    5. Append transaction record
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        transaction_repo: LedgerTransactionRepository,
        max_cas_attempts: int = DEFAULT_MAX_CAS_ATTEMPTS,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.max_cas_attempts = max_cas_attempts

    async def apply(
        self,
        account_id: int,
        delta_balance: int = 0,
        delta_stamps: int = 0,
        kind: TransactionKind = TransactionKind.EARN,
        related_order_id: Optional[int] = None,
        related_discount_code: Optional[str] = None,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> LedgerTransaction:
        """
        Apply a mutation to an account

        Raises:
            ValidationError: Both deltas are zero
            AccountNotFound: Unknown account
            InsufficientFunds: Balance or stamps would go negative (nothing written)
            ConflictError: The row kept changing under us for every attempt
        """
        if delta_balance == 0 and delta_stamps == 0:
            raise ValidationError("Ledger mutation must change balance or stamps", code="EMPTY_MUTATION")

        if idempotency_key:
            existing = await self.transaction_repo.get_by_idempotency_key(idempotency_key)
            if existing:
                logger.info(
                    f"Ledger mutation already applied for key {idempotency_key} "
                    f"(transaction {existing.id})"
                )
                return existing

        for attempt in range(1, self.max_cas_attempts + 1):
            account = await self.account_repo.get_by_id(account_id, for_update=True)
            if not account:
                raise AccountNotFound(account_id)

            balance_before = account.balance
            stamps_before = account.stamps
            balance_after = balance_before + delta_balance
            stamps_after = stamps_before + delta_stamps

            if balance_after < 0 or stamps_after < 0:
                raise InsufficientFunds(
                    account_id, balance_before, stamps_before, delta_balance, delta_stamps
                )

            swapped = await self.account_repo.compare_and_set_balances(
                account_id,
                expected_balance=balance_before,
                expected_stamps=stamps_before,
                new_balance=balance_after,
                new_stamps=stamps_after,
            )
            if swapped:
                break

            logger.info(
                f"Concurrent update on account {account_id}, retrying ledger mutation "
                f"(attempt {attempt}/{self.max_cas_attempts})"
            )
        else:
            raise ConflictError(
                f"Account {account_id} changed concurrently {self.max_cas_attempts} times",
                code="LEDGER_CONTENTION",
                details={"account_id": account_id},
            )

        transaction = LedgerTransaction(
            account_id=account_id,
            kind=kind,
            balance_delta=delta_balance,
            stamps_delta=delta_stamps,
            balance_after=balance_after,
            stamps_after=stamps_after,
            related_order_id=related_order_id,
            related_discount_code=related_discount_code,
            idempotency_key=idempotency_key,
            description=description,
        )
        created = await self.transaction_repo.create(transaction)

        logger.debug(
            f"Ledger {kind.value} on account {account_id}: "
            f"balance {balance_before}->{balance_after}, stamps {stamps_before}->{stamps_after}"
        )
        return created
