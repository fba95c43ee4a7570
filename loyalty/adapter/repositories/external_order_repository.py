"""SQLAlchemy implementation of ExternalOrderRepository"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlmodel import func, select
from sqlmodel.ext.asyncio.session import AsyncSession
from loyalty.app.repositories.external_order_repository import ExternalOrderRepository
from loyalty.domain.base import utcnow
from loyalty.domain.external_order import ExternalOrder


class SqlAlchemyExternalOrderRepository(ExternalOrderRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_external_id(self, external_id: int) -> Optional[ExternalOrder]:
        stmt = select(ExternalOrder).where(ExternalOrder.external_id == external_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, order: ExternalOrder) -> ExternalOrder:
        self.session.add(order)
        await self.session.flush()
        return order

    async def update_status(self, external_id: int, order_status: int) -> None:
        stmt = (
            update(ExternalOrder)
            .where(ExternalOrder.external_id == external_id)
            .values(order_status=order_status, updated_at=utcnow())
        )
        await self.session.execute(stmt)

    async def get_by_account_id(
        self,
        account_id: int,
        order_status: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[ExternalOrder], int]:
        conditions = [ExternalOrder.account_id == account_id]
        if order_status is not None:
            conditions.append(ExternalOrder.order_status == order_status)
        if created_from is not None:
            conditions.append(ExternalOrder.external_created_at >= created_from)
        if created_before is not None:
            conditions.append(ExternalOrder.external_created_at < created_before)

        count_stmt = select(func.count()).select_from(ExternalOrder).where(*conditions)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar()

        stmt = (
            select(ExternalOrder)
            .where(*conditions)
            .order_by(ExternalOrder.external_created_at.desc(), ExternalOrder.external_id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
