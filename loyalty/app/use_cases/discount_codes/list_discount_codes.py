"""List Discount Codes Use Case"""

from libs.result import Result, Return
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound
from .dtos import ListDiscountCodesResponseDTO
from .mapping import to_discount_code_dto


class ListDiscountCodes:
    """Codes owned by an account, newest first, with status derived at read time"""

    def __init__(self, account_repo: AccountRepository, discount_code_repo: DiscountCodeRepository):
        self.account_repo = account_repo
        self.discount_code_repo = discount_code_repo

    async def execute(
        self, account_id: int, limit: int = 20, offset: int = 0
    ) -> Result[ListDiscountCodesResponseDTO]:
        if not await self.account_repo.get_by_id(account_id):
            return Return.err(to_error(AccountNotFound(account_id)))

        codes, total = await self.discount_code_repo.get_by_account_id(
            account_id, limit=limit, offset=offset
        )
        return Return.ok(
            ListDiscountCodesResponseDTO(
                discount_codes=[to_discount_code_dto(code) for code in codes],
                total=total,
                limit=limit,
                offset=offset,
            )
        )
