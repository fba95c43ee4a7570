"""GrantBirthdayRewards Use Case

Credits each member celebrating a birthday today with a balance gift sized by
tier, once per calendar year.
"""

import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.ledger_engine import LedgerEngine
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.ledger_transaction_repository import LedgerTransactionRepository
from loyalty.domain.account import Account
from loyalty.domain.base import utcnow
from loyalty.domain.ledger_transaction import TransactionKind
from loyalty.domain.rewards import birthday_reward_for, birthdays_celebrated_on
from .dtos import BirthdayRewardsResultDTO

logger = logging.getLogger(__name__)


def birthday_idempotency_key(account_id: int, year: int) -> str:
    return f"birthday:{account_id}:{year}"


class GrantBirthdayRewards:
    """
    Use Case: Grant today's birthday rewards

    Business Rules:
    1. Fan 50, shareholder 550, super shareholder 800 cents; a lapsed paid
       membership gets the fan amount
    2. One reward per account and calendar year, enforced by the ledger
       idempotency key birthday:<account id>:<year>
    3. Feb 29 birthdays are celebrated on Feb 28 in common years
    4. Each account commits on its own; one failure does not stop the rest
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        transaction_repo: LedgerTransactionRepository,
        ledger: LedgerEngine,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.ledger = ledger

    async def execute(self, today: Optional[date] = None) -> Result[BirthdayRewardsResultDTO]:
        today = today or utcnow().date()
        result = BirthdayRewardsResultDTO(day=today)
        try:
            accounts = await self.account_repo.list_by_birthdays(birthdays_celebrated_on(today))
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Birthday lookup for {today.isoformat()} failed: {str(e)}", exc_info=True)
            return Return.err(
                Error(
                    code="BIRTHDAY_REWARDS_FAILED",
                    message="Failed to look up today's birthdays",
                    reason=str(e),
                )
            )

        for account in accounts:
            result.accounts_checked += 1
            await self._grant(account, today, result)

        logger.info(
            f"Birthday rewards for {today.isoformat()}: granted={result.rewards_granted}, "
            f"already={result.already_rewarded}, failures={result.failures}"
        )
        return Return.ok(result)

    async def _grant(self, account: Account, today: date, result: BirthdayRewardsResultDTO) -> None:
        key = birthday_idempotency_key(account.id, today.year)
        try:
            if await self.transaction_repo.get_by_idempotency_key(key):
                result.already_rewarded += 1
                return

            amount = birthday_reward_for(account, datetime.combine(today, time.min))
            await self.ledger.apply(
                account.id,
                delta_balance=amount,
                kind=TransactionKind.EARN,
                description="Birthday reward",
                idempotency_key=key,
            )
            await self.uow.commit()
            result.rewards_granted += 1
            result.granted_account_ids.append(account.id)
            logger.info(f"Granted birthday reward of {amount} to account {account.id}")

        except IntegrityError:
            await self.uow.rollback()
            logger.info(f"Birthday reward for account {account.id} granted concurrently, skipping")
            result.already_rewarded += 1
        except Exception as e:
            await self.uow.rollback()
            result.failures += 1
            logger.error(f"Birthday reward for account {account.id} failed: {str(e)}", exc_info=True)
