"""SQLAlchemy implementation of AccountRepository

Balance writes are compare-and-swap UPDATEs; together with SELECT FOR UPDATE
(on databases that support it) they serialize ledger mutations per account.
"""

from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import and_, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.domain.account import Account, Tier
from loyalty.domain.base import utcnow


class SqlAlchemyAccountRepository(AccountRepository):
    """
    SQLAlchemy implementation of AccountRepository

    Features:
    - Pessimistic locking via SELECT FOR UPDATE
    - Compare-and-swap balance updates
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, account_id: int, for_update: bool = False) -> Optional[Account]:
        """
        Retrieve account by ID with optional row-level locking

        Args:
            account_id: Account ID
            for_update: If True, locks the row and overwrites any copy already
                held in the session with the current row

        Returns:
            Account if found, None otherwise
        """
        stmt = select(Account).where(Account.id == account_id)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_member_code(self, member_code: str) -> Optional[Account]:
        stmt = select(Account).where(Account.member_code == member_code)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def member_code_exists(self, member_code: str) -> bool:
        stmt = select(Account.id).where(Account.member_code == member_code)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def create(self, account: Account) -> Account:
        """
        Raises:
            IntegrityError: If member_code or phone is already taken
        """
        self.session.add(account)
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def compare_and_set_balances(
        self,
        account_id: int,
        expected_balance: int,
        expected_stamps: int,
        new_balance: int,
        new_stamps: int,
    ) -> bool:
        stmt = (
            update(Account)
            .where(
                Account.id == account_id,
                Account.balance == expected_balance,
                Account.stamps == expected_stamps,
            )
            .values(balance=new_balance, stamps=new_stamps, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def update_membership(self, account_id: int, tier: Tier, expires_at: Optional[datetime]) -> None:
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(tier=tier, membership_expires_at=expires_at, updated_at=utcnow())
        )
        await self.session.execute(stmt)

    async def list_expired_members(self, now: datetime) -> List[Account]:
        stmt = (
            select(Account)
            .where(
                Account.tier != Tier.FAN,
                Account.membership_expires_at.is_not(None),
                Account.membership_expires_at <= now,
            )
            .order_by(Account.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_profile(
        self, account_id: int, display_name: Optional[str], birthday: Optional[date]
    ) -> None:
        values = {"updated_at": utcnow()}
        if display_name is not None:
            values["display_name"] = display_name
        if birthday is not None:
            values.update(birthday=birthday, birthday_month=birthday.month, birthday_day=birthday.day)
        await self.session.execute(update(Account).where(Account.id == account_id).values(**values))

    async def list_by_birthdays(self, month_days: Sequence[Tuple[int, int]]) -> List[Account]:
        if not month_days:
            return []
        stmt = (
            select(Account)
            .where(
                or_(
                    *[
                        and_(Account.birthday_month == month, Account.birthday_day == day)
                        for month, day in month_days
                    ]
                )
            )
            .order_by(Account.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_all(self) -> List[Account]:
        stmt = select(Account).order_by(Account.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
