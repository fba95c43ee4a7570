"""Operator API Routes

Manual reconciliation tools, scheduled reward runs and sync control.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from loyalty.adapter.factory import (
    build_grant_birthday_rewards,
    build_grant_monthly_card_coupons,
    build_issue_welfare_code,
    build_ledger,
    build_run_sync_cycle,
)
from loyalty.adapter.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyDiscountCodeRepository,
    SqlAlchemyLedgerTransactionRepository,
    SqlAlchemySyncStateRepository,
)
from loyalty.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from loyalty.api.error import ClientError
from loyalty.api.schemas.admin_request import (
    IssueWelfareRequestSchema,
    ReverseRedemptionRequestSchema,
    SyncTriggerRequestSchema,
)
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.use_cases.accounts import ExpireMemberships, ReconcileLedger
from loyalty.app.use_cases.accounts.dtos import ExpireMembershipsResultDTO, ReconciliationResultDTO
from loyalty.app.use_cases.discount_codes import (
    DiscountCodeDTO,
    ReversalResponseDTO,
    ReverseRedemption,
    ReverseRedemptionCommandDTO,
)
from loyalty.app.use_cases.rewards import BirthdayRewardsResultDTO, MonthlyCardCouponsResultDTO
from loyalty.app.use_cases.sync import GetSyncStatus, SyncCycleResultDTO, SyncStatusDTO
from loyalty.domain.sync_state import SyncMode
from loyalty.depends import get_config, get_notification_service, get_order_gateway, get_session

router = APIRouter(prefix="/admin", tags=["Admin"])


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("/redemptions/{ledger_transaction_id}/reverse", response_model=ReversalResponseDTO)
async def reverse_redemption(
    ledger_transaction_id: int,
    request: ReverseRedemptionRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Credit back a redemption whose code was never delivered.

    Repeated calls return the same reversal.
    """
    use_case = ReverseRedemption(
        SqlAlchemyUnitOfWork(session),
        build_ledger(session),
        SqlAlchemyLedgerTransactionRepository(session),
        SqlAlchemyDiscountCodeRepository(session),
    )
    result = await use_case.execute(
        ReverseRedemptionCommandDTO(ledger_transaction_id=ledger_transaction_id, reason=request.reason)
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/accounts/{account_id}/welfare-codes",
    response_model=DiscountCodeDTO,
    status_code=status.HTTP_201_CREATED,
)
async def issue_welfare_code(
    account_id: int,
    request: IssueWelfareRequestSchema,
    session: AsyncSession = Depends(get_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    config=Depends(get_config),
):
    use_case = build_issue_welfare_code(session, gateway, config)
    result = await use_case.execute(
        account_id=account_id,
        amount=request.amount,
        code_type=request.code_type,
        expire_months=request.expire_months,
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/ledger/reconcile", response_model=ReconciliationResultDTO)
async def reconcile_ledger(session: AsyncSession = Depends(get_session)):
    use_case = ReconcileLedger(
        SqlAlchemyAccountRepository(session),
        SqlAlchemyLedgerTransactionRepository(session),
    )
    result = await use_case.execute()
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/memberships/expire", response_model=ExpireMembershipsResultDTO)
async def expire_memberships(session: AsyncSession = Depends(get_session)):
    use_case = ExpireMemberships(SqlAlchemyUnitOfWork(session), SqlAlchemyAccountRepository(session))
    result = await use_case.execute()
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/rewards/birthdays", response_model=BirthdayRewardsResultDTO)
async def grant_birthday_rewards(session: AsyncSession = Depends(get_session)):
    """Grant today's birthday rewards; members already rewarded this year are skipped"""
    result = await build_grant_birthday_rewards(session).execute()
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/rewards/monthly-card-coupons", response_model=MonthlyCardCouponsResultDTO)
async def grant_monthly_card_coupons(
    session: AsyncSession = Depends(get_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    config=Depends(get_config),
):
    """Issue today's coupon for every running monthly card that has not had one"""
    result = await build_grant_monthly_card_coupons(session, gateway, config).execute()
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/sync", response_model=SyncStatusDTO)
async def get_sync_status(session: AsyncSession = Depends(get_session)):
    result = await GetSyncStatus(SqlAlchemySyncStateRepository(session)).execute()
    return result.value


@router.post(
    "/sync",
    response_model=SyncCycleResultDTO,
    responses={409: {"description": "A sync cycle is already running"}},
)
async def trigger_sync(
    request: SyncTriggerRequestSchema,
    session: AsyncSession = Depends(get_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    notifier: NotificationService = Depends(get_notification_service),
    config=Depends(get_config),
):
    """
    Run one sync cycle now and wait for it.

    Rejected with 409 while another cycle (timer or manual) is running.
    """
    use_case = build_run_sync_cycle(session, gateway, notifier, config)
    result = await use_case.execute(
        SyncMode(request.mode),
        window_start=to_naive_utc(request.start),
        window_end=to_naive_utc(request.end),
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value
