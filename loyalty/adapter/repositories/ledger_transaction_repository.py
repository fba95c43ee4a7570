"""SQLAlchemy implementation of LedgerTransactionRepository

Idempotency is enforced by the unique constraint on idempotency_key.
"""

from typing import List, Optional, Tuple
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from loyalty.app.repositories.ledger_transaction_repository import LedgerTransactionRepository
from loyalty.domain.ledger_transaction import LedgerTransaction


class SqlAlchemyLedgerTransactionRepository(LedgerTransactionRepository):
    """
    SQLAlchemy implementation of LedgerTransactionRepository

    Features:
    - Idempotency enforcement via unique idempotency_key constraint
    - Immutable append-only transactions
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, transaction: LedgerTransaction) -> LedgerTransaction:
        """
        Create a new ledger transaction

        Raises:
            IntegrityError: If idempotency_key already exists (duplicate transaction attempt)
        """
        self.session.add(transaction)
        await self.session.flush()
        await self.session.refresh(transaction)
        return transaction

    async def get_by_id(self, transaction_id: int) -> Optional[LedgerTransaction]:
        stmt = select(LedgerTransaction).where(LedgerTransaction.id == transaction_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[LedgerTransaction]:
        stmt = select(LedgerTransaction).where(
            LedgerTransaction.idempotency_key == idempotency_key
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_account_id(
        self, account_id: int, limit: int = 20, offset: int = 0
    ) -> Tuple[List[LedgerTransaction], int]:
        """
        Returns:
            Tuple of (transactions newest first, total count)
        """
        count_stmt = select(func.count()).select_from(LedgerTransaction).where(
            LedgerTransaction.account_id == account_id
        )
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar()

        stmt = (
            select(LedgerTransaction)
            .where(LedgerTransaction.account_id == account_id)
            .order_by(LedgerTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_for_replay(self, account_id: int) -> List[LedgerTransaction]:
        stmt = (
            select(LedgerTransaction)
            .where(LedgerTransaction.account_id == account_id)
            .order_by(LedgerTransaction.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
