"""OpenAccount Use Case

Creates a member account with a collision-free member code and an optional
referrer.
"""

import logging
import random
from datetime import date
from typing import Optional, TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.account import Account, Tier, MEMBER_CODE_MIN, MEMBER_CODE_MAX
from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import CodeType
from loyalty.domain.errors import ConflictError, DomainError, ValidationError
from .dtos import OpenAccountCommandDTO, OpenAccountResponseDTO, AccountResponseDTO

if TYPE_CHECKING:
    from loyalty.app.use_cases.discount_codes.issue_welfare_code import IssueWelfareCode

logger = logging.getLogger(__name__)

MAX_MEMBER_CODE_TRIES = 10
MAX_REFERRER_DEPTH = 10000
REGISTRATION_WELFARE_EXPIRE_MONTHS = 1


def validate_birthday(birthday: Optional[date]) -> None:
    if birthday is not None and birthday > utcnow().date():
        raise ValidationError(f"Birthday {birthday.isoformat()} is in the future", code="INVALID_BIRTHDAY")


def to_account_dto(account: Account) -> AccountResponseDTO:
    return AccountResponseDTO(
        account_id=account.id,
        member_code=account.member_code,
        display_name=account.display_name,
        tier=account.tier.value if hasattr(account.tier, "value") else account.tier,
        balance=account.balance,
        stamps=account.stamps,
        referrer_id=account.referrer_id,
        membership_expires_at=account.membership_expires_at,
        birthday=account.birthday,
        created_at=account.created_at,
    )


class OpenAccount:
    """
    Use Case: Open a member account

    Business Rules:
    1. member_code is random in 1000000001-9999999999 and unused
    2. A referrer must exist (and be an active paid member when configured)
    3. The referrer chain is checked once here; it is acyclic by construction
       because referrers always exist before the accounts they refer
    4. New accounts start as fan with zero balance and stamps; a birthday,
       if given, cannot lie in the future
    5. An optional registration welfare code is issued after commit; a mint
       failure is reported to the caller, not swallowed
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        welfare_issuer: Optional["IssueWelfareCode"] = None,
        welfare_amount: int = 0,
        referrer_requires_paid_tier: bool = True,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.welfare_issuer = welfare_issuer
        self.welfare_amount = welfare_amount
        self.referrer_requires_paid_tier = referrer_requires_paid_tier

    async def execute(self, command: OpenAccountCommandDTO) -> Result[OpenAccountResponseDTO]:
        try:
            validate_birthday(command.birthday)
            referrer = None
            if command.referrer_member_code:
                referrer = await self.account_repo.get_by_member_code(command.referrer_member_code)
                if not referrer:
                    return Return.err(
                        Error(
                            code="REFERRER_NOT_FOUND",
                            message=f"Referrer {command.referrer_member_code} does not exist",
                        )
                    )
                if self.referrer_requires_paid_tier and not referrer.is_active_paid_member():
                    return Return.err(
                        Error(
                            code="REFERRER_NOT_ELIGIBLE",
                            message="The referrer is not an active paid member",
                        )
                    )
                await self._assert_acyclic(referrer)

            member_code = await self._generate_member_code()

            account = Account(
                member_code=member_code,
                display_name=command.display_name,
                phone=command.phone,
                tier=Tier.FAN,
                balance=0,
                stamps=0,
                referrer_id=referrer.id if referrer else None,
            )
            account.set_birthday(command.birthday)
            created = await self.account_repo.create(account)
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except IntegrityError as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="ACCOUNT_ALREADY_EXISTS",
                    message="An account with this phone or member code already exists",
                    reason=str(e.orig),
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="OPEN_ACCOUNT_FAILED",
                    message="Failed to open account",
                    reason=str(e),
                )
            )

        logger.info(f"Opened account {created.id} with member code {created.member_code}")

        response = OpenAccountResponseDTO(account=to_account_dto(created))
        if self.welfare_issuer and self.welfare_amount > 0:
            welfare = await self.welfare_issuer.execute(
                account_id=created.id,
                amount=self.welfare_amount,
                code_type=CodeType.SWEETS_CREDITS_REWARD,
                expire_months=REGISTRATION_WELFARE_EXPIRE_MONTHS,
            )
            if welfare.is_ok():
                response.welfare_code_issued = True
                response.welfare_code = welfare.value.code
            else:
                logger.error(
                    f"Registration welfare code for account {created.id} not issued: "
                    f"{welfare.error.code} {welfare.error.message}"
                )
        return Return.ok(response)

    async def _generate_member_code(self) -> str:
        for _ in range(MAX_MEMBER_CODE_TRIES):
            candidate = str(random.randint(MEMBER_CODE_MIN, MEMBER_CODE_MAX))
            if not await self.account_repo.member_code_exists(candidate):
                return candidate
        raise ConflictError("Failed to generate unique member code", code="MEMBER_CODE_GENERATION_FAILED")

    async def _assert_acyclic(self, referrer: Account) -> None:
        """Walk up the referrer chain; a repeated account means corrupted data"""
        seen = set()
        current: Optional[Account] = referrer
        depth = 0
        while current is not None:
            if current.id in seen or depth > MAX_REFERRER_DEPTH:
                raise ValidationError(
                    f"Referrer chain of account {referrer.id} contains a cycle",
                    code="REFERRER_CYCLE",
                )
            seen.add(current.id)
            depth += 1
            if current.referrer_id is None:
                return
            current = await self.account_repo.get_by_id(current.referrer_id)
