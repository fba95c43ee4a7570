"""
List Transactions Use Case

Retrieves ledger history for an account with pagination.
"""
from libs.result import Result, Return
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.ledger_transaction_repository import LedgerTransactionRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound
from .dtos import ListTransactionsResponseDTO, TransactionDTO


class ListTransactions:
    """
    Use case: View ledger transactions

    Transactions are ordered newest first. An unknown account is an error,
    not an empty page.
    """

    def __init__(self, account_repo: AccountRepository, transaction_repo: LedgerTransactionRepository):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    async def execute(
        self, account_id: int, limit: int = 20, offset: int = 0
    ) -> Result[ListTransactionsResponseDTO]:
        if not await self.account_repo.get_by_id(account_id):
            return Return.err(to_error(AccountNotFound(account_id)))

        transactions, total = await self.transaction_repo.get_by_account_id(
            account_id=account_id,
            limit=limit,
            offset=offset,
        )

        transaction_dtos = [
            TransactionDTO(
                id=txn.id,
                kind=txn.kind.value if hasattr(txn.kind, "value") else txn.kind,
                balance_delta=txn.balance_delta,
                stamps_delta=txn.stamps_delta,
                balance_after=txn.balance_after,
                stamps_after=txn.stamps_after,
                related_order_id=txn.related_order_id,
                related_discount_code=txn.related_discount_code,
                description=txn.description,
                created_at=txn.created_at,
            )
            for txn in transactions
        ]

        return Return.ok(
            ListTransactionsResponseDTO(
                transactions=transaction_dtos,
                total=total,
                limit=limit,
                offset=offset,
            )
        )
