"""UpdateProfile Use Case"""

import logging

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import AccountNotFound, DomainError, ValidationError
from .dtos import AccountResponseDTO, UpdateProfileCommandDTO
from .open_account import to_account_dto, validate_birthday

logger = logging.getLogger(__name__)


class UpdateProfile:
    """
    Use Case: Change a member's display name or birthday

    Balances, tier and referrer are not editable here.
    """

    def __init__(self, uow: UnitOfWork, account_repo: AccountRepository):
        self.uow = uow
        self.account_repo = account_repo

    async def execute(self, account_id: int, command: UpdateProfileCommandDTO) -> Result[AccountResponseDTO]:
        try:
            if command.display_name is None and command.birthday is None:
                raise ValidationError("Nothing to update", code="EMPTY_PROFILE_UPDATE")
            validate_birthday(command.birthday)

            if not await self.account_repo.get_by_id(account_id):
                raise AccountNotFound(account_id)

            await self.account_repo.update_profile(account_id, command.display_name, command.birthday)
            updated = await self.account_repo.get_by_id(account_id, for_update=True)
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="UPDATE_PROFILE_FAILED",
                    message="Failed to update profile",
                    reason=str(e),
                )
            )

        logger.info(f"Updated profile of account {account_id}")
        return Return.ok(to_account_dto(updated))
