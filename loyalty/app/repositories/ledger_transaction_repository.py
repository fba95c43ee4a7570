"""Ledger Transaction Repository Interface

Transactions are immutable and append-only. Idempotency is enforced via the
unique idempotency_key.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from loyalty.domain.ledger_transaction import LedgerTransaction


class LedgerTransactionRepository(ABC):

    @abstractmethod
    async def create(self, transaction: LedgerTransaction) -> LedgerTransaction:
        """
        Append a transaction

        Raises:
            IntegrityError: If idempotency_key already exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: int) -> Optional[LedgerTransaction]:
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[LedgerTransaction]:
        pass

    @abstractmethod
    async def get_by_account_id(
        self, account_id: int, limit: int = 20, offset: int = 0
    ) -> Tuple[List[LedgerTransaction], int]:
        """
        Page through an account's transactions, newest first

        Returns:
            (transactions, total_count)
        """
        pass

    @abstractmethod
    async def list_for_replay(self, account_id: int) -> List[LedgerTransaction]:
        """All transactions of an account in creation (id) order"""
        pass
