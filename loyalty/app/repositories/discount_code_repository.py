"""Discount Code Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from loyalty.domain.discount_code import CodeReservation, DiscountCode


class DiscountCodeRepository(ABC):

    @abstractmethod
    async def create(self, discount_code: DiscountCode) -> DiscountCode:
        pass

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[DiscountCode]:
        pass

    @abstractmethod
    async def code_exists(self, code: str) -> bool:
        """True if the code was ever reserved or issued"""
        pass

    @abstractmethod
    async def reserve(self, reservation: CodeReservation) -> CodeReservation:
        """Stage a claim on a code; a duplicate fails when the transaction is flushed"""
        pass

    @abstractmethod
    async def get_by_ledger_transaction_id(self, transaction_id: int) -> Optional[DiscountCode]:
        pass

    @abstractmethod
    async def get_by_account_id(
        self, account_id: int, limit: int = 20, offset: int = 0
    ) -> Tuple[List[DiscountCode], int]:
        pass

    @abstractmethod
    async def mark_used(self, discount_code_id: int, used_at: datetime) -> None:
        pass
