"""ReconcileLedger Use Case

Replays every account's ledger from zero and compares the result with the
cached balance and stamps on the account row.
"""

import logging
import time
from libs.result import Result, Return, Error
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.ledger_transaction_repository import LedgerTransactionRepository
from loyalty.domain.base import utcnow
from loyalty.domain.ledger_transaction import replay
from .dtos import LedgerDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileLedger:
    """
    Use Case: Reconcile accounts against their ledger

    Business Rules:
    1. Replays each account's transactions in creation order
    2. Flags accounts whose balance or stamps differ from the replay
    3. Flags accounts whose stored balance_after/stamps_after snapshots
       are inconsistent, naming the first broken transaction
    4. Read-only: never repairs data
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        transaction_repo: LedgerTransactionRepository,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    async def execute(self) -> Result[ReconciliationResultDTO]:
        start_time = time.time()
        reconciliation_time = utcnow()

        try:
            logger.info("Starting ledger reconciliation")

            accounts = await self.account_repo.get_all()
            total_accounts = len(accounts)
            discrepancies: list[LedgerDiscrepancyDTO] = []

            for account in accounts:
                transactions = await self.transaction_repo.list_for_replay(account.id)
                balance, stamps, broken_at = replay(transactions)

                if balance == account.balance and stamps == account.stamps and broken_at is None:
                    continue

                discrepancies.append(
                    LedgerDiscrepancyDTO(
                        account_id=account.id,
                        member_code=account.member_code,
                        account_balance=account.balance,
                        replayed_balance=balance,
                        account_stamps=account.stamps,
                        replayed_stamps=stamps,
                        broken_transaction_id=broken_at,
                    )
                )
                logger.warning(
                    f"Discrepancy found for account {account.id}: "
                    f"balance={account.balance} replayed={balance}, "
                    f"stamps={account.stamps} replayed={stamps}, "
                    f"broken_transaction={broken_at}"
                )

            execution_time_ms = int((time.time() - start_time) * 1000)

            if discrepancies:
                logger.warning(
                    f"Reconciliation complete. Found {len(discrepancies)} discrepancies "
                    f"out of {total_accounts} accounts in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {total_accounts} accounts balanced "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(
                ReconciliationResultDTO(
                    total_accounts_checked=total_accounts,
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    reconciliation_time=reconciliation_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Reconciliation failed: {str(e)}", exc_info=True)
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile ledger",
                    reason=str(e),
                )
            )
