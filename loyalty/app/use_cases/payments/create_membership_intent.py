"""CreateMembershipIntent Use Case

Starts a membership upgrade purchase.
"""

import logging

from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.payment_gateway import PaymentGateway
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.payment_repository import MembershipPurchaseRepository
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.account import Account, Tier
from loyalty.domain.errors import AccountNotFound, ConflictError, DomainError, ValidationError
from loyalty.domain.payment import MembershipPurchase
from loyalty.domain.rewards import membership_price
from .dtos import CreateMembershipCommandDTO, PaymentIntentResponseDTO

logger = logging.getLogger(__name__)

TIER_RANK = {
    Tier.FAN: 0,
    Tier.SHAREHOLDER: 1,
    Tier.SUPER_SHAREHOLDER: 2,
}


def check_upgrade(account: Account, target: Tier) -> None:
    """Raise unless moving to target is an upgrade of the active membership"""
    if not account.is_active_paid_member():
        return
    if TIER_RANK[target] <= TIER_RANK[account.tier]:
        raise ConflictError(
            f"Account {account.id} is already {account.tier.value}; only upgrades can be purchased",
            code="MEMBERSHIP_NOT_UPGRADE",
        )


class CreateMembershipIntent:
    """
    Use Case: Create a membership purchase

    Prices: shareholder $8, super shareholder $30. A lapsed member may buy
    any paid tier again.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        membership_repo: MembershipPurchaseRepository,
        payment_gateway: PaymentGateway,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.membership_repo = membership_repo
        self.payment_gateway = payment_gateway

    async def execute(self, command: CreateMembershipCommandDTO) -> Result[PaymentIntentResponseDTO]:
        try:
            try:
                target = Tier(command.target_tier)
            except ValueError:
                raise ValidationError(f"Unknown tier {command.target_tier}", code="INVALID_TIER")
            price = membership_price(target)
            if price is None:
                raise ValidationError(f"Tier {target.value} cannot be purchased", code="INVALID_TIER")

            account = await self.account_repo.get_by_id(command.account_id)
            if not account:
                raise AccountNotFound(command.account_id)
            check_upgrade(account, target)

            handle = await self.payment_gateway.create_payment_intent(
                price,
                metadata={"kind": "membership", "account_id": str(account.id), "tier": target.value},
                description=f"{target.value} membership for member {account.member_code}",
            )

            created = await self.membership_repo.create(
                MembershipPurchase(
                    account_id=account.id,
                    payment_reference=handle.reference,
                    target_tier=target,
                    amount=price,
                    upstream_status=handle.upstream_status,
                )
            )
            await self.uow.commit()

        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CREATE_MEMBERSHIP_FAILED",
                    message="Failed to create membership purchase",
                    reason=str(e),
                )
            )

        logger.info(
            f"Membership purchase {created.payment_reference} created for account "
            f"{created.account_id}: {target.value} for {price}"
        )
        return Return.ok(
            PaymentIntentResponseDTO(
                payment_reference=created.payment_reference,
                client_secret=handle.client_secret,
                account_id=created.account_id,
                amount=created.amount,
                total_amount=created.amount,
                target_tier=target.value,
                status=created.status.value,
            )
        )
