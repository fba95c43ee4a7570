"""SQLAlchemy implementation of DiscountCodeRepository"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import CodeReservation, DiscountCode


class SqlAlchemyDiscountCodeRepository(DiscountCodeRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, discount_code: DiscountCode) -> DiscountCode:
        self.session.add(discount_code)
        await self.session.flush()
        await self.session.refresh(discount_code)
        return discount_code

    async def get_by_code(self, code: str) -> Optional[DiscountCode]:
        stmt = select(DiscountCode).where(DiscountCode.code == code)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        reserved = await self.session.execute(
            select(CodeReservation.code).where(CodeReservation.code == code)
        )
        if reserved.first() is not None:
            return True
        issued = await self.session.execute(select(DiscountCode.id).where(DiscountCode.code == code))
        return issued.first() is not None

    async def reserve(self, reservation: CodeReservation) -> CodeReservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get_by_ledger_transaction_id(self, transaction_id: int) -> Optional[DiscountCode]:
        stmt = select(DiscountCode).where(DiscountCode.ledger_transaction_id == transaction_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_account_id(
        self, account_id: int, limit: int = 20, offset: int = 0
    ) -> Tuple[List[DiscountCode], int]:
        count_stmt = select(func.count()).select_from(DiscountCode).where(
            DiscountCode.account_id == account_id
        )
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar()

        stmt = (
            select(DiscountCode)
            .where(DiscountCode.account_id == account_id)
            .order_by(DiscountCode.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def mark_used(self, discount_code_id: int, used_at: datetime) -> None:
        """Used is terminal: an already used code keeps its original used_at"""
        stmt = (
            update(DiscountCode)
            .where(DiscountCode.id == discount_code_id, DiscountCode.is_used == False)  # noqa: E712
            .values(is_used=True, used_at=used_at, updated_at=utcnow())
        )
        await self.session.execute(stmt)
