"""Get Balance Use Case

Retrieves an account's current balance and stamps.
"""

from libs.result import Result, Return
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound
from .dtos import BalanceResponseDTO


class GetBalance:
    """
    Get Balance Use Case

    Read-only operation that returns the cached projection of the ledger.
    """

    def __init__(self, account_repo: AccountRepository):
        self.account_repo = account_repo

    async def execute(self, account_id: int) -> Result[BalanceResponseDTO]:
        """
        Errors:
            ACCOUNT_NOT_FOUND: No such account, with the id in details
        """
        account = await self.account_repo.get_by_id(account_id)

        if not account:
            return Return.err(to_error(AccountNotFound(account_id)))

        return Return.ok(
            BalanceResponseDTO(
                account_id=account.id,
                member_code=account.member_code,
                tier=account.tier.value if hasattr(account.tier, "value") else account.tier,
                balance=account.balance,
                stamps=account.stamps,
                membership_expires_at=account.membership_expires_at,
                last_updated=account.updated_at,
            )
        )
