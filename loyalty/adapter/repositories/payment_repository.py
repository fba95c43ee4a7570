"""SQLAlchemy implementations of the payment record repositories"""

from datetime import date, datetime
from typing import List, Optional
from sqlalchemy import func, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from loyalty.app.repositories.payment_repository import (
    MembershipPurchaseRepository,
    MonthlyCardRepository,
    RechargeRecordRepository,
)
from loyalty.domain.payment import MembershipPurchase, MonthlyCard, PaymentStatus, RechargeRecord


class SqlAlchemyRechargeRecordRepository(RechargeRecordRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, record: RechargeRecord) -> RechargeRecord:
        """
        Raises:
            IntegrityError: If payment_reference already exists
        """
        self.session.add(record)
        await self.session.flush()
        await self.session.refresh(record)
        return record

    async def get_by_reference(self, payment_reference: str, for_update: bool = False) -> Optional[RechargeRecord]:
        stmt = select(RechargeRecord).where(RechargeRecord.payment_reference == payment_reference)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, record: RechargeRecord) -> RechargeRecord:
        self.session.add(record)
        await self.session.flush()
        await self.session.refresh(record)
        return record


class SqlAlchemyMembershipPurchaseRepository(MembershipPurchaseRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, purchase: MembershipPurchase) -> MembershipPurchase:
        self.session.add(purchase)
        await self.session.flush()
        await self.session.refresh(purchase)
        return purchase

    async def get_by_reference(self, payment_reference: str, for_update: bool = False) -> Optional[MembershipPurchase]:
        stmt = (
            select(MembershipPurchase)
            .where(MembershipPurchase.payment_reference == payment_reference)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, purchase: MembershipPurchase) -> MembershipPurchase:
        self.session.add(purchase)
        await self.session.flush()
        await self.session.refresh(purchase)
        return purchase

    async def complete_pending(
        self,
        payment_reference: str,
        status: PaymentStatus,
        upstream_status: Optional[str],
        now: datetime,
    ) -> bool:
        stmt = (
            update(MembershipPurchase)
            .where(
                MembershipPurchase.payment_reference == payment_reference,
                MembershipPurchase.status == PaymentStatus.PENDING,
            )
            .values(status=status, upstream_status=upstream_status, updated_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class SqlAlchemyMonthlyCardRepository(MonthlyCardRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, card: MonthlyCard) -> MonthlyCard:
        self.session.add(card)
        await self.session.flush()
        await self.session.refresh(card)
        return card

    async def get_by_reference(self, payment_reference: str, for_update: bool = False) -> Optional[MonthlyCard]:
        stmt = (
            select(MonthlyCard)
            .where(MonthlyCard.payment_reference == payment_reference)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_subscription_reference(self, subscription_reference: str) -> Optional[MonthlyCard]:
        stmt = (
            select(MonthlyCard)
            .where(MonthlyCard.subscription_reference == subscription_reference)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for_account(self, account_id: int, now: datetime) -> Optional[MonthlyCard]:
        stmt = (
            select(MonthlyCard)
            .where(
                MonthlyCard.account_id == account_id,
                MonthlyCard.status == PaymentStatus.SUCCEEDED,
                MonthlyCard.ends_at >= now,
            )
            .order_by(MonthlyCard.ends_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_account_id(self, account_id: int) -> List[MonthlyCard]:
        stmt = (
            select(MonthlyCard)
            .where(MonthlyCard.account_id == account_id)
            .order_by(MonthlyCard.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active(self, now: datetime) -> List[MonthlyCard]:
        stmt = (
            select(MonthlyCard)
            .where(MonthlyCard.status == PaymentStatus.SUCCEEDED, MonthlyCard.ends_at >= now)
            .order_by(MonthlyCard.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def complete_pending(
        self,
        payment_reference: str,
        status: PaymentStatus,
        upstream_status: Optional[str],
        now: datetime,
        starts_at: Optional[datetime] = None,
        ends_at: Optional[datetime] = None,
    ) -> bool:
        stmt = (
            update(MonthlyCard)
            .where(
                MonthlyCard.payment_reference == payment_reference,
                MonthlyCard.status == PaymentStatus.PENDING,
            )
            .values(
                status=status,
                upstream_status=upstream_status,
                starts_at=starts_at,
                ends_at=ends_at,
                updated_at=now,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def extend(
        self,
        card_id: int,
        renewal_reference: str,
        subscription_reference: str,
        ends_at: datetime,
        now: datetime,
    ) -> bool:
        stmt = (
            update(MonthlyCard)
            .where(
                MonthlyCard.id == card_id,
                or_(
                    MonthlyCard.last_renewal_reference.is_(None),
                    MonthlyCard.last_renewal_reference != renewal_reference,
                ),
            )
            .values(
                last_renewal_reference=renewal_reference,
                subscription_reference=subscription_reference,
                status=PaymentStatus.SUCCEEDED,
                starts_at=func.coalesce(MonthlyCard.starts_at, now),
                ends_at=ends_at,
                updated_at=now,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def claim_coupon_day(self, card_id: int, day: date, now: datetime) -> bool:
        stmt = (
            update(MonthlyCard)
            .where(
                MonthlyCard.id == card_id,
                or_(
                    MonthlyCard.last_coupon_granted_on.is_(None),
                    MonthlyCard.last_coupon_granted_on != day,
                ),
            )
            .values(last_coupon_granted_on=day, updated_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release_coupon_day(self, card_id: int, day: date, previous: Optional[date]) -> None:
        stmt = (
            update(MonthlyCard)
            .where(MonthlyCard.id == card_id, MonthlyCard.last_coupon_granted_on == day)
            .values(last_coupon_granted_on=previous)
        )
        await self.session.execute(stmt)
