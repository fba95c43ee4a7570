"""SQLAlchemy implementation of SyncStateRepository

The lease is taken with a conditional UPDATE so that two processes racing for
it cannot both see rowcount 1.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from loyalty.app.repositories.sync_state_repository import SyncStateRepository
from loyalty.domain.sync_state import SyncCursor, SyncLease, SyncState


class SqlAlchemySyncStateRepository(SyncStateRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def try_acquire_lease(self, name: str, holder: str, now: datetime, expires_at: datetime) -> bool:
        """
        Acquire the named lease

        The first acquisition inserts the lease row. Losing that insert race
        rolls back the session's current transaction, so call this before
        any other pending work.
        """
        stmt = (
            update(SyncLease)
            .where(
                SyncLease.name == name,
                or_(SyncLease.state != SyncState.RUNNING, SyncLease.expires_at < now),
            )
            .values(
                state=SyncState.RUNNING,
                holder=holder,
                acquired_at=now,
                expires_at=expires_at,
                updated_at=now,
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 1:
            return True

        if await self.get_lease(name) is not None:
            return False

        self.session.add(
            SyncLease(
                name=name,
                state=SyncState.RUNNING,
                holder=holder,
                acquired_at=now,
                expires_at=expires_at,
                updated_at=now,
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            return False
        return True

    async def renew_lease(self, name: str, holder: str, now: datetime, expires_at: datetime) -> bool:
        stmt = (
            update(SyncLease)
            .where(
                SyncLease.name == name,
                SyncLease.holder == holder,
                SyncLease.state == SyncState.RUNNING,
            )
            .values(expires_at=expires_at, updated_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release_lease(self, name: str, holder: str, state: SyncState, now: datetime) -> None:
        stmt = (
            update(SyncLease)
            .where(SyncLease.name == name, SyncLease.holder == holder)
            .values(state=state, expires_at=None, updated_at=now)
        )
        await self.session.execute(stmt)

    async def get_lease(self, name: str) -> Optional[SyncLease]:
        stmt = select(SyncLease).where(SyncLease.name == name).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_cursor(self, sync_type: str) -> Optional[SyncCursor]:
        stmt = (
            select(SyncCursor)
            .where(SyncCursor.sync_type == sync_type)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_cursor(self, cursor: SyncCursor) -> SyncCursor:
        merged = await self.session.merge(cursor)
        await self.session.flush()
        return merged
