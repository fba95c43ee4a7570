"""Membership Expiry Background Worker

Downgrades lapsed paid members to fan on a timer.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from loyalty.adapter.repositories import SqlAlchemyAccountRepository
from loyalty.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from loyalty.app.use_cases.accounts import ExpireMemberships
from loyalty.app.use_cases.accounts.dtos import ExpireMembershipsResultDTO

logger = logging.getLogger(__name__)


class MembershipExpiryWorker:

    def __init__(self, db_uri: Optional[str] = None):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("MembershipExpiryWorker initialized")

    async def run_once(self) -> ExpireMembershipsResultDTO:
        async with self.async_session_factory() as session:
            use_case = ExpireMemberships(
                SqlAlchemyUnitOfWork(session),
                SqlAlchemyAccountRepository(session),
            )
            result = await use_case.execute()

        if result.is_err():
            raise RuntimeError(f"Membership expiry failed: {result.error.message}")
        return result.value

    async def run_forever(self, interval_seconds: int = 6 * 3600):
        logger.info(f"Starting continuous membership expiry with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(f"Membership expiry complete. Downgraded {result.expired_accounts} accounts")
            except Exception as e:
                logger.error(f"Membership expiry cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        await self.engine.dispose()
        logger.info("MembershipExpiryWorker shutdown complete")


async def main():
    """
    Usage:
        python -m loyalty.worker.membership_expiry --once
        python -m loyalty.worker.membership_expiry --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Membership Expiry Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.MEMBERSHIP_EXPIRY_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 21600 = 6 hours)"
    )
    args = parser.parse_args()

    worker = MembershipExpiryWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print(f"Expired memberships: {result.expired_accounts}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
