"""RunSyncCycle Use Case

Pulls orders and coupon usage from the point-of-sale platform into the local
store and credits purchase rewards through the ledger. One cycle runs at a
time system-wide, guarded by the durable sync lease.
"""

import logging
import os
import socket
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.ledger_engine import LedgerEngine
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.services.order_gateway import CouponRecord, OrderGateway, OrderRecord
from loyalty.app.services.retry import RetryPolicy, call_with_retry
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.app.repositories.external_order_repository import ExternalOrderRepository
from loyalty.app.repositories.sync_state_repository import SyncStateRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.base import utcnow
from loyalty.domain.errors import SyncFailed, SyncLeaseLost, UpstreamUnavailable, ValidationError
from loyalty.domain.external_order import ExternalOrder
from loyalty.domain.ledger_transaction import TransactionKind
from loyalty.domain.rewards import cashback_for
from loyalty.domain.sync_state import SYNC_LEASE_NAME, SyncCursor, SyncMode, SyncState
from .dtos import SyncCycleResultDTO

logger = logging.getLogger(__name__)


def from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)


def default_holder() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class SyncSettings:
    order_page_size: int = 100
    coupon_page_size: int = 20
    initial_lookback_hours: int = 24
    full_window_hours: int = 24
    lease_ttl_seconds: int = 900
    order_stamps_reward: int = 100
    order_cashback_enabled: bool = True


@dataclass
class SyncStats:
    pages_fetched: int = 0
    orders_seen: int = 0
    orders_ingested: int = 0
    orders_updated: int = 0
    orders_skipped: int = 0
    coupons_seen: int = 0
    coupons_marked_used: int = 0
    record_failures: int = 0


class RunSyncCycle:
    """
    Use Case: Run one external sync cycle

    Business Rules:
    1. A cycle only starts if the lease is free (or its holder's lease expired);
       otherwise SYNC_ALREADY_RUNNING, never queued
    2. Windows: incremental [watermark, now], full [now - 24h, now], manual as given
    3. Each order is ingested once (external id primary key) and rewarded once
       (ledger idempotency keys order:<id>:buyer and order:<id>:referrer)
    4. Each page fetch is retried with backoff; exhaustion aborts the cycle
    5. A failing record is rolled back on its own; the remaining records are
       still processed but the cycle ends Failed
    6. Only a Completed incremental/full cycle advances its cursor
    7. The lease is renewed after every page fetch; a cycle whose lease was
       taken over stops as Failed (SYNC_LEASE_LOST) and leaves the cursor alone
    8. The lease is always released, with the cycle's final state
    """

    def __init__(
        self,
        uow: UnitOfWork,
        sync_repo: SyncStateRepository,
        account_repo: AccountRepository,
        order_repo: ExternalOrderRepository,
        discount_code_repo: DiscountCodeRepository,
        ledger: LedgerEngine,
        gateway: OrderGateway,
        notifier: Optional[NotificationService] = None,
        retry_policy: Optional[RetryPolicy] = None,
        settings: Optional[SyncSettings] = None,
    ):
        self.uow = uow
        self.sync_repo = sync_repo
        self.account_repo = account_repo
        self.order_repo = order_repo
        self.discount_code_repo = discount_code_repo
        self.ledger = ledger
        self.gateway = gateway
        self.notifier = notifier
        self.retry_policy = retry_policy or RetryPolicy()
        self.settings = settings or SyncSettings()

    async def execute(
        self,
        mode: SyncMode = SyncMode.INCREMENTAL,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
        holder: Optional[str] = None,
    ) -> Result[SyncCycleResultDTO]:
        """
        Errors:
            INVALID_SYNC_WINDOW: Manual mode without a valid window
            SYNC_ALREADY_RUNNING: Another cycle holds the lease
            LEASE_ACQUISITION_FAILED: The lease could not be read or written
        """
        mode = SyncMode(mode)
        if mode == SyncMode.MANUAL and (
            window_start is None or window_end is None or window_start >= window_end
        ):
            return Return.err(
                to_error(
                    ValidationError(
                        "Manual sync requires a window with start before end",
                        code="INVALID_SYNC_WINDOW",
                    )
                )
            )

        holder = holder or default_holder()
        started_at = utcnow()

        try:
            acquired = await self.sync_repo.try_acquire_lease(
                SYNC_LEASE_NAME,
                holder,
                started_at,
                started_at + timedelta(seconds=self.settings.lease_ttl_seconds),
            )
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="LEASE_ACQUISITION_FAILED",
                    message="Failed to acquire sync lease",
                    reason=str(e),
                )
            )

        if not acquired:
            lease = await self.sync_repo.get_lease(SYNC_LEASE_NAME)
            logger.info(f"Sync cycle ({mode.value}) rejected: lease held by {lease.holder if lease else None}")
            return Return.err(
                Error(
                    code="SYNC_ALREADY_RUNNING",
                    message="A sync cycle is already running",
                    details={"holder": lease.holder if lease else None},
                )
            )

        stats = SyncStats()
        error: Optional[str] = None
        error_code: Optional[str] = None
        window = (window_start, window_end)
        try:
            window = await self._resolve_window(mode, started_at, window_start, window_end)
            logger.info(f"Sync cycle ({mode.value}) started by {holder}: {window[0]} -> {window[1]}")

            await self._sync_orders(window, holder, stats)
            await self._sync_coupons(holder, stats)

            if stats.record_failures:
                error = f"{stats.record_failures} records failed"
        except SyncLeaseLost as e:
            await self.uow.rollback()
            error = e.message
            error_code = e.code
            logger.error(f"Sync cycle ({mode.value}) aborted: {e.message}")
        except UpstreamUnavailable as e:
            await self.uow.rollback()
            error = e.message
            logger.error(f"Sync cycle ({mode.value}) aborted: {e.message}")
        except Exception as e:
            await self.uow.rollback()
            error = str(e)
            logger.error(f"Sync cycle ({mode.value}) aborted: {str(e)}", exc_info=True)

        state = SyncState.FAILED if error else SyncState.COMPLETED
        if error and not error_code:
            error_code = SyncFailed.code
        finished_at = await self._finish(
            mode, holder, state, window, started_at, error, lease_lost=error_code == SyncLeaseLost.code
        )

        result = SyncCycleResultDTO(
            mode=mode.value,
            state=state.value,
            window_start=window[0] or started_at,
            window_end=window[1] or started_at,
            error=error,
            error_code=error_code,
            started_at=started_at,
            finished_at=finished_at,
            **asdict(stats),
        )
        logger.info(
            f"Sync cycle ({mode.value}) {state.value}: ingested={stats.orders_ingested}, "
            f"updated={stats.orders_updated}, skipped={stats.orders_skipped}, "
            f"coupons_used={stats.coupons_marked_used}, failures={stats.record_failures}"
        )

        if state == SyncState.FAILED and self.notifier:
            await self.notifier.send_alert(
                "sync_failed",
                f"Sync cycle ({mode.value}) failed: {error}",
                {
                    "mode": mode.value,
                    "window_start": result.window_start.isoformat(),
                    "window_end": result.window_end.isoformat(),
                    "record_failures": stats.record_failures,
                    "error_code": error_code,
                },
            )
        return Return.ok(result)

    async def _resolve_window(
        self,
        mode: SyncMode,
        now: datetime,
        window_start: Optional[datetime],
        window_end: Optional[datetime],
    ) -> Tuple[datetime, datetime]:
        if mode == SyncMode.MANUAL:
            return window_start, window_end
        if mode == SyncMode.FULL:
            return now - timedelta(hours=self.settings.full_window_hours), now

        cursor = await self.sync_repo.get_cursor(SyncMode.INCREMENTAL.value)
        if cursor and cursor.watermark:
            return cursor.watermark, now
        return now - timedelta(hours=self.settings.initial_lookback_hours), now

    async def _renew_lease(self, holder: str) -> None:
        now = utcnow()
        renewed = await self.sync_repo.renew_lease(
            SYNC_LEASE_NAME, holder, now, now + timedelta(seconds=self.settings.lease_ttl_seconds)
        )
        await self.uow.commit()
        if not renewed:
            raise SyncLeaseLost(holder)

    async def _sync_orders(self, window: Tuple[datetime, datetime], holder: str, stats: SyncStats) -> None:
        page = 1
        while True:
            order_page = await call_with_retry(
                lambda: self.gateway.list_orders(window[0], window[1], page, self.settings.order_page_size),
                self.retry_policy,
                f"Fetch orders page {page}",
            )
            stats.pages_fetched += 1
            await self._renew_lease(holder)
            stats.orders_skipped += order_page.skipped_records

            for record in order_page.records:
                stats.orders_seen += 1
                await self._process_order(record, stats)

            if page >= order_page.total_pages:
                return
            page += 1

    async def _process_order(self, record: OrderRecord, stats: SyncStats) -> None:
        try:
            existing = await self.order_repo.get_by_external_id(record.id)
            if existing:
                if existing.order_status != record.status:
                    await self.order_repo.update_status(record.id, record.status)
                    await self.uow.commit()
                    stats.orders_updated += 1
                return

            if not record.member_code:
                stats.orders_skipped += 1
                return
            account = await self.account_repo.get_by_member_code(record.member_code)
            if not account:
                logger.debug(f"Order {record.id} skipped: unknown member {record.member_code}")
                stats.orders_skipped += 1
                return

            price = record.price_cents
            stamps = self.settings.order_stamps_reward if price > 0 else 0
            cashback = cashback_for(account, price) if self.settings.order_cashback_enabled else 0

            await self.order_repo.create(
                ExternalOrder(
                    external_id=record.id,
                    account_id=account.id,
                    member_code=record.member_code,
                    price=price,
                    product_name=record.product_name,
                    product_no=record.product_no,
                    order_status=record.status,
                    pay_type=record.pay_type,
                    stamps_earned=stamps,
                    cashback_earned=cashback,
                    external_created_at=from_epoch_ms(record.create_date),
                )
            )

            if stamps or cashback:
                await self.ledger.apply(
                    account.id,
                    delta_balance=cashback,
                    delta_stamps=stamps,
                    kind=TransactionKind.EARN,
                    related_order_id=record.id,
                    description=f"Purchase reward for order {record.id}",
                    idempotency_key=f"order:{record.id}:buyer",
                )

            if self.settings.order_cashback_enabled and account.referrer_id and price > 0:
                referrer = await self.account_repo.get_by_id(account.referrer_id)
                referrer_cashback = cashback_for(referrer, price) if referrer else 0
                if referrer_cashback:
                    await self.ledger.apply(
                        referrer.id,
                        delta_balance=referrer_cashback,
                        kind=TransactionKind.EARN,
                        related_order_id=record.id,
                        description=f"Referral cashback for order {record.id}",
                        idempotency_key=f"order:{record.id}:referrer",
                    )

            await self.uow.commit()
            stats.orders_ingested += 1

        except IntegrityError:
            await self.uow.rollback()
            logger.info(f"Order {record.id} was ingested concurrently, skipping")
            stats.orders_skipped += 1
        except Exception as e:
            await self.uow.rollback()
            stats.record_failures += 1
            logger.error(f"Failed to ingest order {record.id}: {str(e)}", exc_info=True)

    async def _sync_coupons(self, holder: str, stats: SyncStats) -> None:
        page = 1
        while True:
            coupon_page = await call_with_retry(
                lambda: self.gateway.list_discount_codes(True, page, self.settings.coupon_page_size),
                self.retry_policy,
                f"Fetch discount codes page {page}",
            )
            stats.pages_fetched += 1
            await self._renew_lease(holder)

            for coupon in coupon_page.records:
                stats.coupons_seen += 1
                await self._process_coupon(coupon, stats)

            if page >= coupon_page.total_pages:
                return
            page += 1

    async def _process_coupon(self, coupon: CouponRecord, stats: SyncStats) -> None:
        try:
            local = await self.discount_code_repo.get_by_code(coupon.code)
            if not local:
                return

            used = coupon.is_used
            if used is None:
                logger.warning(f"Discount code {coupon.code} has unknown usage flag {coupon.is_use!r}")
                return
            if used and not local.is_used:
                await self.discount_code_repo.mark_used(local.id, from_epoch_ms(coupon.use_date) or utcnow())
                await self.uow.commit()
                stats.coupons_marked_used += 1
            elif not used and local.is_used:
                logger.warning(f"Discount code {coupon.code} is used locally but unused upstream, keeping local state")

        except Exception as e:
            await self.uow.rollback()
            stats.record_failures += 1
            logger.error(f"Failed to sync discount code {coupon.code}: {str(e)}", exc_info=True)

    async def _finish(
        self,
        mode: SyncMode,
        holder: str,
        state: SyncState,
        window: Tuple[Optional[datetime], Optional[datetime]],
        started_at: datetime,
        error: Optional[str],
        lease_lost: bool = False,
    ) -> datetime:
        finished_at = utcnow()
        if lease_lost:
            logger.warning(f"Sync cycle ({mode.value}) lost its lease, {mode.value} cursor left untouched")
        elif mode != SyncMode.MANUAL:
            try:
                cursor = await self.sync_repo.get_cursor(mode.value) or SyncCursor(sync_type=mode.value)
                if state == SyncState.COMPLETED:
                    cursor.watermark = window[1]
                cursor.last_status = state
                cursor.last_error = error[:1000] if error else None
                cursor.last_started_at = started_at
                cursor.last_finished_at = finished_at
                cursor.updated_at = finished_at
                await self.sync_repo.save_cursor(cursor)
                await self.uow.commit()
            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Failed to record {mode.value} sync cursor: {str(e)}", exc_info=True)

        try:
            await self.sync_repo.release_lease(SYNC_LEASE_NAME, holder, state, finished_at)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to release sync lease held by {holder}: {str(e)}", exc_info=True)
        return finished_at
