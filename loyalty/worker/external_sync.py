"""External Sync Background Worker

Runs sync cycles against the point-of-sale platform on a timer: incremental
cycles every interval, and a rolling full-window cycle every N cycles to catch
late-arriving orders. Several worker processes may run; the durable lease
lets only one cycle run at a time.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Result
from loyalty.adapter.factory import build_run_sync_cycle, create_order_gateway
from loyalty.adapter.services.notification_service import create_notification_service
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.use_cases.sync import SyncCycleResultDTO
from loyalty.domain.sync_state import SyncMode

logger = logging.getLogger(__name__)


class ExternalSyncWorker:
    """
    Background worker for the external sync

    Usage:
        worker = ExternalSyncWorker()
        result = await worker.run_once(SyncMode.FULL)

        await worker.run_forever(interval_seconds=60, full_sync_every=60)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        config=None,
        gateway: Optional[OrderGateway] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.config = config or ApplicationConfig
        self.db_uri = db_uri or self.config.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.gateway = gateway or create_order_gateway(self.config)
        self.notifier = notifier or create_notification_service(self.config.OPERATIONS_NOTIFICATION_WEBHOOK)

        logger.info("ExternalSyncWorker initialized")

    async def run_once(
        self,
        mode: SyncMode = SyncMode.INCREMENTAL,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> Result[SyncCycleResultDTO]:
        """
        Run one cycle

        A cycle rejected because another one is running comes back as an
        SYNC_ALREADY_RUNNING error result.
        """
        async with self.async_session_factory() as session:
            use_case = build_run_sync_cycle(session, self.gateway, self.notifier, self.config)
            return await use_case.execute(mode, window_start=window_start, window_end=window_end)

    async def run_forever(self, interval_seconds: int = 60, full_sync_every: int = 60):
        """
        Run cycles continuously

        Args:
            interval_seconds: Seconds between cycles
            full_sync_every: Every Nth cycle is a full-window cycle (0 disables)
        """
        logger.info(
            f"Starting continuous external sync with {interval_seconds}s interval, "
            f"full sync every {full_sync_every} cycles"
        )

        cycle = 0
        while True:
            cycle += 1
            mode = SyncMode.INCREMENTAL
            if full_sync_every and cycle % full_sync_every == 0:
                mode = SyncMode.FULL

            try:
                result = await self.run_once(mode)
                if result.is_err():
                    if result.error.code == "SYNC_ALREADY_RUNNING":
                        logger.info("Sync cycle skipped, another cycle is running")
                    else:
                        logger.error(f"Sync cycle could not start: {result.error.code} {result.error.message}")
            except Exception as e:
                logger.error(f"Sync cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.gateway.close()
        await self.engine.dispose()
        logger.info("ExternalSyncWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m loyalty.worker.external_sync --once
        python -m loyalty.worker.external_sync --once --full
        python -m loyalty.worker.external_sync --interval 60
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="External Sync Worker")
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit")
    parser.add_argument("--full", action="store_true", help="With --once, sync the full rolling window")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.SYNC_INTERVAL_SECONDS,
        help="Interval between cycles in seconds (default: 60)"
    )
    parser.add_argument(
        "--full-every", type=int, default=ApplicationConfig.SYNC_FULL_EVERY_CYCLES,
        help="Run a full-window cycle every N cycles (default: 60)"
    )
    args = parser.parse_args()

    if not ApplicationConfig.SYNC_ENABLED:
        logger.info("External sync is disabled, exiting")
        return

    worker = ExternalSyncWorker()

    try:
        if args.once:
            result = await worker.run_once(SyncMode.FULL if args.full else SyncMode.INCREMENTAL)
            if result.is_err():
                print(f"Sync not run: {result.error.code} {result.error.message}")
            else:
                cycle = result.value
                print(f"Sync cycle {cycle.state}:")
                print(f"  Window: {cycle.window_start} -> {cycle.window_end}")
                print(f"  Orders ingested: {cycle.orders_ingested}, updated: {cycle.orders_updated}, "
                      f"skipped: {cycle.orders_skipped}")
                print(f"  Discount codes marked used: {cycle.coupons_marked_used}")
                if cycle.error:
                    print(f"  Error: {cycle.error}")
        else:
            await worker.run_forever(interval_seconds=args.interval, full_sync_every=args.full_every)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
