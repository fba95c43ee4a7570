"""Ledger Reconciliation Background Worker

Periodically replays every account's ledger and alerts on accounts whose
cached balance or stamps drifted from it.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from loyalty.adapter.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyLedgerTransactionRepository,
)
from loyalty.adapter.services.notification_service import create_notification_service
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.use_cases.accounts import ReconcileLedger
from loyalty.app.use_cases.accounts.dtos import ReconciliationResultDTO
from loyalty.domain.base import utcnow

logger = logging.getLogger(__name__)


class LedgerReconcilerWorker:
    """
    Background worker for ledger reconciliation

    Features:
    - Replays transactions and compares them with account balances and stamps
    - Logs discrepancies and sends an operational alert
    - Can run once or continuously

    Usage:
        worker = LedgerReconcilerWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=86400)  # Daily
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        config=None,
        notifier: Optional[NotificationService] = None,
    ):
        self.config = config or ApplicationConfig
        self.db_uri = db_uri or self.config.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.notifier = notifier or create_notification_service(self.config.OPERATIONS_NOTIFICATION_WEBHOOK)

        logger.info("LedgerReconcilerWorker initialized")

    async def run_once(self) -> ReconciliationResultDTO:
        if not getattr(self.config, "RECONCILIATION_ENABLED", True):
            logger.info("Ledger reconciliation is disabled, skipping")
            return ReconciliationResultDTO(
                total_accounts_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                reconciliation_time=utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = ReconcileLedger(
                account_repo=SqlAlchemyAccountRepository(session),
                transaction_repo=SqlAlchemyLedgerTransactionRepository(session),
            )
            result = await use_case.execute()

        if result.is_err():
            logger.error(f"Reconciliation failed: {result.error.message}")
            raise RuntimeError(f"Reconciliation failed: {result.error.message}")

        response = result.value
        if response.discrepancies_found > 0:
            logger.error(f"ALERT: {response.discrepancies_found} ledger discrepancies found!")
            for d in response.discrepancies:
                logger.error(
                    f"  - Account {d.account_id} ({d.member_code}): "
                    f"balance={d.account_balance} replayed={d.replayed_balance}, "
                    f"stamps={d.account_stamps} replayed={d.replayed_stamps}, "
                    f"broken_transaction={d.broken_transaction_id}"
                )
            await self.notifier.send_alert(
                "ledger_discrepancy",
                f"{response.discrepancies_found} accounts disagree with their ledger",
                {"account_ids": ",".join(str(d.account_id) for d in response.discrepancies)},
            )

        return response

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous ledger reconciliation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Reconciliation cycle complete. "
                    f"Checked {result.total_accounts_checked} accounts, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("LedgerReconcilerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m loyalty.worker.ledger_reconciler --once
        python -m loyalty.worker.ledger_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Ledger Reconciliation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    worker = LedgerReconcilerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Total accounts checked: {result.total_accounts_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            for d in result.discrepancies:
                print(
                    f"  - Account {d.account_id}: balance {d.account_balance}/{d.replayed_balance}, "
                    f"stamps {d.account_stamps}/{d.replayed_stamps}"
                )
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
