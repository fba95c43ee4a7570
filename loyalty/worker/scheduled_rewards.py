"""Scheduled Rewards Background Worker

Grants birthday rewards and daily monthly card coupons on a timer. Both use
cases skip what was already granted, so an hourly interval only retries
failures and picks up the new day.
"""

import asyncio
import logging
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from loyalty.adapter.factory import (
    build_grant_birthday_rewards,
    build_grant_monthly_card_coupons,
    create_order_gateway,
)
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.use_cases.rewards import BirthdayRewardsResultDTO, MonthlyCardCouponsResultDTO

logger = logging.getLogger(__name__)


class ScheduledRewardsWorker:

    def __init__(self, db_uri: Optional[str] = None, config=None, gateway: Optional[OrderGateway] = None):
        self.config = config or ApplicationConfig
        self.db_uri = db_uri or self.config.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.gateway = gateway or create_order_gateway(self.config)

        logger.info("ScheduledRewardsWorker initialized")

    async def run_once(self) -> Tuple[BirthdayRewardsResultDTO, MonthlyCardCouponsResultDTO]:
        async with self.async_session_factory() as session:
            birthdays = await build_grant_birthday_rewards(session).execute()
        if birthdays.is_err():
            raise RuntimeError(f"Birthday rewards failed: {birthdays.error.message}")

        async with self.async_session_factory() as session:
            coupons = await build_grant_monthly_card_coupons(session, self.gateway, self.config).execute()
        if coupons.is_err():
            raise RuntimeError(f"Monthly card coupons failed: {coupons.error.message}")

        return birthdays.value, coupons.value

    async def run_forever(self, interval_seconds: int = 3600):
        logger.info(f"Starting scheduled rewards with {interval_seconds}s interval")

        while True:
            try:
                birthdays, coupons = await self.run_once()
                logger.info(
                    f"Scheduled rewards complete. Birthday rewards: {birthdays.rewards_granted}, "
                    f"monthly card coupons: {coupons.coupons_granted}"
                )
            except Exception as e:
                logger.error(f"Scheduled rewards cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        await self.engine.dispose()
        logger.info("ScheduledRewardsWorker shutdown complete")


async def main():
    """
    Usage:
        python -m loyalty.worker.scheduled_rewards --once
        python -m loyalty.worker.scheduled_rewards --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Scheduled Rewards Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.SCHEDULED_REWARDS_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 3600 = 1 hour)"
    )
    args = parser.parse_args()

    worker = ScheduledRewardsWorker()

    try:
        if args.once:
            birthdays, coupons = await worker.run_once()
            print(f"Birthday rewards granted: {birthdays.rewards_granted}")
            print(f"Monthly card coupons granted: {coupons.coupons_granted}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
