"""IssueWelfareCode Use Case

Grants a discount code without any ledger debit (membership gifts,
registration gifts).
"""

import logging
from typing import Union

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.code_minter import CodeMinter
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.discount_code_repository import DiscountCodeRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import CodeType, DiscountCode
from loyalty.domain.errors import AccountNotFound, ConflictError, DomainError, ValidationError
from loyalty.domain.rewards import code_expires_at
from .dtos import DiscountCodeDTO
from .mapping import to_discount_code_dto
from .redemption import validate_expire_months

logger = logging.getLogger(__name__)


class IssueWelfareCode:
    """
    Use Case: Issue a welfare discount code

    The code is reserved and committed before it is minted. Mint failures
    are returned as MINT_FAILED so the caller can retry; no DiscountCode row
    is written for a code that does not exist upstream.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        minter: CodeMinter,
        discount_code_repo: DiscountCodeRepository,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.minter = minter
        self.discount_code_repo = discount_code_repo

    async def execute(
        self,
        account_id: int,
        amount: int,
        code_type: Union[CodeType, str],
        expire_months: int = 1,
    ) -> Result[DiscountCodeDTO]:
        try:
            validate_expire_months(expire_months)
            if amount <= 0:
                raise ValidationError(f"Welfare amount must be positive, got {amount}", code="INVALID_DISCOUNT_AMOUNT")
            try:
                code_type = CodeType(code_type)
            except ValueError:
                raise ValidationError(f"Unknown code type {code_type}", code="INVALID_CODE_TYPE")

            account = await self.account_repo.get_by_id(account_id)
            if not account:
                raise AccountNotFound(account_id)

            code = await self.minter.generate_code()
            await self.minter.reserve(code, account_id)
            await self.uow.commit()

            external_id = await self.minter.mint(code, amount, expire_months)

            now = utcnow()
            created = await self.discount_code_repo.create(
                DiscountCode(
                    account_id=account_id,
                    code=code,
                    discount_amount=amount,
                    code_type=code_type,
                    expires_at=code_expires_at(now, expire_months),
                    external_id=external_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            if e.code == "MINT_FAILED":
                logger.error(f"Welfare code for account {account_id} not minted: {e.message}")
            return Return.err(to_error(e))
        except IntegrityError:
            await self.uow.rollback()
            return Return.err(
                to_error(ConflictError("Discount code was reserved concurrently", code="CODE_GENERATION_FAILED"))
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="ISSUE_WELFARE_CODE_FAILED",
                    message="Failed to issue welfare code",
                    reason=str(e),
                )
            )

        logger.info(f"Issued {code_type.value} code {created.code} worth {amount} to account {account_id}")
        return Return.ok(to_discount_code_dto(created))
