"""Account Repository Interface

Defines the contract for account persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple
from loyalty.domain.account import Account, Tier


class AccountRepository(ABC):
    """
    Repository interface for Account persistence

    Balance writes go through compare_and_set_balances so that concurrent
    ledger mutations on one account never lose updates, with or without
    row-level locks.
    """

    @abstractmethod
    async def get_by_id(self, account_id: int, for_update: bool = False) -> Optional[Account]:
        """
        Retrieve account by ID

        Args:
            account_id: Account ID
            for_update: If True, lock the row with SELECT FOR UPDATE and
                reload the current row state

        Returns:
            Account if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_member_code(self, member_code: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def member_code_exists(self, member_code: str) -> bool:
        pass

    @abstractmethod
    async def create(self, account: Account) -> Account:
        pass

    @abstractmethod
    async def compare_and_set_balances(
        self,
        account_id: int,
        expected_balance: int,
        expected_stamps: int,
        new_balance: int,
        new_stamps: int,
    ) -> bool:
        """
        Atomically replace balance/stamps if they still hold the expected values

        Returns:
            True if the row was updated, False if another writer got there first
        """
        pass

    @abstractmethod
    async def update_membership(self, account_id: int, tier: Tier, expires_at: Optional[datetime]) -> None:
        pass

    @abstractmethod
    async def list_expired_members(self, now: datetime) -> List[Account]:
        """Paid-tier accounts whose membership_expires_at is at or before now"""
        pass

    @abstractmethod
    async def update_profile(
        self, account_id: int, display_name: Optional[str], birthday: Optional[date]
    ) -> None:
        """Overwrite the given fields; None leaves a field unchanged"""
        pass

    @abstractmethod
    async def list_by_birthdays(self, month_days: Sequence[Tuple[int, int]]) -> List[Account]:
        """Accounts whose birthday falls on any of the (month, day) pairs"""
        pass

    @abstractmethod
    async def get_all(self) -> List[Account]:
        pass
