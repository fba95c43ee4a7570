"""ListMonthlyCards Use Case"""

from libs.result import Result, Return
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.payment_repository import MonthlyCardRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound
from .dtos import ListMonthlyCardsResponseDTO
from .mapping import to_monthly_card_dto


class ListMonthlyCards:
    """Every monthly card an account bought, newest first, pending ones included"""

    def __init__(self, account_repo: AccountRepository, card_repo: MonthlyCardRepository):
        self.account_repo = account_repo
        self.card_repo = card_repo

    async def execute(self, account_id: int) -> Result[ListMonthlyCardsResponseDTO]:
        if not await self.account_repo.get_by_id(account_id):
            return Return.err(to_error(AccountNotFound(account_id)))

        cards = await self.card_repo.get_by_account_id(account_id)
        return Return.ok(ListMonthlyCardsResponseDTO(monthly_cards=[to_monthly_card_dto(card) for card in cards]))
