"""ConfirmPayment Use Case

Applies the outcome of an upstream payment exactly once, whether the outcome
arrives by a client-triggered confirm, a webhook, or both at the same time.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple, Union, TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from loyalty.app.services.unit_of_work import UnitOfWork
from loyalty.app.services.ledger_engine import LedgerEngine
from loyalty.app.services.payment_gateway import PaymentGateway
from loyalty.app.services.retry import RetryPolicy, call_with_retry
from loyalty.app.repositories.account_repository import AccountRepository
from loyalty.app.repositories.payment_repository import (
    MembershipPurchaseRepository,
    MonthlyCardRepository,
    RechargeRecordRepository,
)
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.base import utcnow
from loyalty.domain.errors import DomainError
from loyalty.domain.ledger_transaction import TransactionKind
from loyalty.domain.payment import MembershipPurchase, MonthlyCard, PaymentStatus, RechargeRecord
from loyalty.domain.rewards import MEMBERSHIP_DURATION_DAYS, MEMBERSHIP_WELFARE, MONTHLY_CARD_DAYS
from .dtos import PaymentRecordDTO

if TYPE_CHECKING:
    from loyalty.app.use_cases.discount_codes.issue_welfare_code import IssueWelfareCode

logger = logging.getLogger(__name__)

PaymentRecord = Union[RechargeRecord, MembershipPurchase, MonthlyCard]


def to_payment_dto(record: PaymentRecord, welfare: Tuple[int, int] = (0, 0)) -> PaymentRecordDTO:
    if isinstance(record, RechargeRecord):
        return PaymentRecordDTO(
            kind="recharge",
            payment_reference=record.payment_reference,
            account_id=record.account_id,
            status=record.status.value,
            upstream_status=record.upstream_status,
            amount=record.amount,
            bonus_amount=record.bonus_amount,
            total_amount=record.total_amount,
            ledger_transaction_id=record.ledger_transaction_id,
            updated_at=record.updated_at,
        )
    if isinstance(record, MonthlyCard):
        return PaymentRecordDTO(
            kind="monthly_card",
            payment_reference=record.payment_reference,
            account_id=record.account_id,
            status=record.status.value,
            upstream_status=record.upstream_status,
            amount=record.amount,
            total_amount=record.amount,
            plan_type=record.plan_type.value,
            starts_at=record.starts_at,
            ends_at=record.ends_at,
            updated_at=record.updated_at,
        )
    return PaymentRecordDTO(
        kind="membership",
        payment_reference=record.payment_reference,
        account_id=record.account_id,
        status=record.status.value,
        upstream_status=record.upstream_status,
        amount=record.amount,
        total_amount=record.amount,
        target_tier=record.target_tier.value,
        welfare_codes_issued=welfare[0],
        welfare_codes_failed=welfare[1],
        updated_at=record.updated_at,
    )


class ConfirmPayment:
    """
    Use Case: Confirm an upstream payment

    Business Rules:
    1. A terminal record is returned unchanged
    2. The gateway is queried outside of any row lock
    3. The record row is locked and re-checked before acting
    4. Recharge success: one earn of amount + bonus, idempotency key recharge:<ref>
    5. Membership success: tier upgraded for a year, welfare codes issued
       after commit by whichever confirm made the transition
    6. Monthly card success: the card runs for 30 days from the transition
    7. Still pending: nothing changes
    8. A lost duplicate-key race re-reads the record instead of failing

    Flow:
    1. Find the record (recharge, then membership, then monthly card)
    2. Resolve the upstream status (delivered or queried)
    3. Lock, re-check, apply, commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        recharge_repo: RechargeRecordRepository,
        membership_repo: MembershipPurchaseRepository,
        ledger: LedgerEngine,
        payment_gateway: PaymentGateway,
        welfare_issuer: Optional["IssueWelfareCode"] = None,
        retry_policy: Optional[RetryPolicy] = None,
        card_repo: Optional[MonthlyCardRepository] = None,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.recharge_repo = recharge_repo
        self.membership_repo = membership_repo
        self.card_repo = card_repo
        self.ledger = ledger
        self.payment_gateway = payment_gateway
        self.welfare_issuer = welfare_issuer
        self.retry_policy = retry_policy or RetryPolicy()

    async def execute(
        self,
        payment_reference: str,
        delivered_status: Optional[PaymentStatus] = None,
        upstream_status: Optional[str] = None,
    ) -> Result[PaymentRecordDTO]:
        """
        Args:
            payment_reference: Upstream payment reference
            delivered_status: Status carried by a verified notification; when
                absent the gateway is asked
            upstream_status: Raw upstream status string, stored for audit

        Errors:
            PAYMENT_NOT_FOUND: No record for the reference
        """
        try:
            record = await self._find(payment_reference)
            if record is None:
                return Return.err(
                    Error(
                        code="PAYMENT_NOT_FOUND",
                        message=f"No payment found for reference {payment_reference}",
                    )
                )
            if record.status.is_terminal:
                return Return.ok(to_payment_dto(record))

            status = delivered_status
            if status is None:
                status = await call_with_retry(
                    lambda: self.payment_gateway.retrieve_status(payment_reference),
                    self.retry_policy,
                    f"Retrieve payment {payment_reference}",
                )
            if status == PaymentStatus.PENDING:
                return Return.ok(to_payment_dto(record))

            if isinstance(record, RechargeRecord):
                settled = await self._settle_recharge(payment_reference, status, upstream_status)
                return Return.ok(to_payment_dto(settled))
            if isinstance(record, MonthlyCard):
                settled = await self._settle_monthly_card(payment_reference, status, upstream_status)
                return Return.ok(to_payment_dto(settled))

            settled, transitioned = await self._settle_membership(payment_reference, status, upstream_status)
            welfare = (0, 0)
            if transitioned and status == PaymentStatus.SUCCEEDED:
                welfare = await self._issue_membership_welfare(settled)
            return Return.ok(to_payment_dto(settled, welfare))

        except IntegrityError:
            await self.uow.rollback()
            logger.info(f"Payment {payment_reference} settled concurrently, re-reading")
            record = await self._find(payment_reference)
            return Return.ok(to_payment_dto(record))
        except DomainError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Confirming payment {payment_reference} failed: {str(e)}", exc_info=True)
            return Return.err(
                Error(
                    code="CONFIRM_PAYMENT_FAILED",
                    message="Failed to confirm payment",
                    reason=str(e),
                )
            )

    async def _find(self, payment_reference: str) -> Optional[PaymentRecord]:
        record = await self.recharge_repo.get_by_reference(payment_reference)
        if record:
            return record
        purchase = await self.membership_repo.get_by_reference(payment_reference)
        if purchase or self.card_repo is None:
            return purchase
        return await self.card_repo.get_by_reference(payment_reference)

    async def _settle_recharge(
        self, payment_reference: str, status: PaymentStatus, upstream_status: Optional[str]
    ) -> RechargeRecord:
        record = await self.recharge_repo.get_by_reference(payment_reference, for_update=True)
        if record.status.is_terminal:
            await self.uow.rollback()
            return record

        if status == PaymentStatus.SUCCEEDED:
            transaction = await self.ledger.apply(
                record.account_id,
                delta_balance=record.total_amount,
                kind=TransactionKind.EARN,
                description=f"Recharge {record.amount} + bonus {record.bonus_amount}",
                idempotency_key=f"recharge:{payment_reference}",
            )
            record.ledger_transaction_id = transaction.id

        record.status = status
        record.upstream_status = upstream_status or status.value
        record.updated_at = utcnow()
        saved = await self.recharge_repo.save(record)
        await self.uow.commit()

        logger.info(
            f"Recharge {payment_reference} for account {record.account_id} settled as {status.value}"
        )
        return saved

    async def _settle_membership(
        self, payment_reference: str, status: PaymentStatus, upstream_status: Optional[str]
    ) -> Tuple[MembershipPurchase, bool]:
        purchase = await self.membership_repo.get_by_reference(payment_reference, for_update=True)
        if purchase.status.is_terminal:
            await self.uow.rollback()
            return purchase, False

        now = utcnow()
        transitioned = await self.membership_repo.complete_pending(
            payment_reference, status, upstream_status or status.value, now
        )
        if not transitioned:
            await self.uow.rollback()
            return await self.membership_repo.get_by_reference(payment_reference), False

        if status == PaymentStatus.SUCCEEDED:
            await self.account_repo.update_membership(
                purchase.account_id,
                purchase.target_tier,
                now + timedelta(days=MEMBERSHIP_DURATION_DAYS),
            )
        await self.uow.commit()

        logger.info(
            f"Membership purchase {payment_reference} for account {purchase.account_id} "
            f"settled as {status.value}"
        )
        return await self.membership_repo.get_by_reference(payment_reference), True

    async def _settle_monthly_card(
        self, payment_reference: str, status: PaymentStatus, upstream_status: Optional[str]
    ) -> MonthlyCard:
        card = await self.card_repo.get_by_reference(payment_reference, for_update=True)
        if card.status.is_terminal:
            await self.uow.rollback()
            return card

        now = utcnow()
        succeeded = status == PaymentStatus.SUCCEEDED
        transitioned = await self.card_repo.complete_pending(
            payment_reference,
            status,
            upstream_status or status.value,
            now,
            starts_at=now if succeeded else None,
            ends_at=now + timedelta(days=MONTHLY_CARD_DAYS) if succeeded else None,
        )
        if not transitioned:
            await self.uow.rollback()
            return await self.card_repo.get_by_reference(payment_reference)
        await self.uow.commit()

        logger.info(
            f"Monthly card {payment_reference} for account {card.account_id} settled as {status.value}"
        )
        return await self.card_repo.get_by_reference(payment_reference)

    async def _issue_membership_welfare(self, purchase: MembershipPurchase) -> Tuple[int, int]:
        grant = MEMBERSHIP_WELFARE.get(purchase.target_tier)
        if not grant or not self.welfare_issuer:
            return 0, 0

        code_type, amount, count, expire_months = grant
        issued = 0
        failed = 0
        for _ in range(count):
            result = await self.welfare_issuer.execute(
                account_id=purchase.account_id,
                amount=amount,
                code_type=code_type,
                expire_months=expire_months,
            )
            if result.is_ok():
                issued += 1
            else:
                failed += 1
                logger.error(
                    f"Membership welfare code for purchase {purchase.payment_reference} failed: "
                    f"{result.error.code} {result.error.message}"
                )
        return issued, failed
