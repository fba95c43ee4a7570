"""Accounts API Routes

Account opening and profile, balances, ledger and order history and discount
codes.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from loyalty.adapter.factory import build_code_minter, build_ledger, build_list_orders, build_open_account
from loyalty.adapter.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyDiscountCodeRepository,
    SqlAlchemyLedgerTransactionRepository,
)
from loyalty.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from loyalty.api.error import ClientError
from loyalty.api.schemas.account_request import (
    OpenAccountRequestSchema,
    RedeemRequestSchema,
    UpdateProfileRequestSchema,
)
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.use_cases.accounts import GetBalance, ListTransactions, UpdateProfile
from loyalty.app.use_cases.accounts.dtos import (
    AccountResponseDTO,
    BalanceResponseDTO,
    ListOrdersResponseDTO,
    ListTransactionsResponseDTO,
    OpenAccountCommandDTO,
    OpenAccountResponseDTO,
    UpdateProfileCommandDTO,
)
from loyalty.app.use_cases.discount_codes import (
    ListDiscountCodes,
    ListDiscountCodesResponseDTO,
    RedeemCommandDTO,
    RedeemWithBalance,
    RedeemWithStamps,
    RedemptionResponseDTO,
)
from loyalty.depends import get_config, get_notification_service, get_order_gateway, get_session

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=OpenAccountResponseDTO, status_code=status.HTTP_201_CREATED)
async def open_account(
    request: OpenAccountRequestSchema,
    session: AsyncSession = Depends(get_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    config=Depends(get_config),
):
    """
    Open a member account.

    **Returns:**
    - 201: Account created; `welfare_code_issued` is false when a configured
      registration gift could not be minted
    - 400: Unknown or ineligible referrer
    - 409: Phone already registered
    """
    use_case = build_open_account(session, gateway, config)
    result = await use_case.execute(
        OpenAccountCommandDTO(
            display_name=request.display_name,
            phone=request.phone,
            referrer_member_code=request.referrer_member_code,
            birthday=request.birthday,
        )
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.patch("/{account_id}", response_model=AccountResponseDTO)
async def update_profile(
    account_id: int,
    request: UpdateProfileRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """Change the display name or birthday"""
    use_case = UpdateProfile(SqlAlchemyUnitOfWork(session), SqlAlchemyAccountRepository(session))
    result = await use_case.execute(
        account_id,
        UpdateProfileCommandDTO(display_name=request.display_name, birthday=request.birthday),
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/{account_id}/balance", response_model=BalanceResponseDTO)
async def get_balance(account_id: int, session: AsyncSession = Depends(get_session)):
    use_case = GetBalance(SqlAlchemyAccountRepository(session))
    result = await use_case.execute(account_id)
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/{account_id}/transactions", response_model=ListTransactionsResponseDTO)
async def list_transactions(
    account_id: int,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """Ledger history, newest first"""
    use_case = ListTransactions(
        SqlAlchemyAccountRepository(session),
        SqlAlchemyLedgerTransactionRepository(session),
    )
    result = await use_case.execute(account_id, limit=limit, offset=offset)
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/{account_id}/orders", response_model=ListOrdersResponseDTO)
async def list_orders(
    account_id: int,
    order_status: Optional[int] = Query(default=None),
    start_date: Optional[date] = Query(default=None, description="Inclusive, YYYY-MM-DD"),
    end_date: Optional[date] = Query(default=None, description="Inclusive, YYYY-MM-DD"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """Synced point-of-sale orders with the stamps and cashback each earned, newest first"""
    use_case = build_list_orders(session)
    result = await use_case.execute(
        account_id,
        order_status=order_status,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/{account_id}/discount-codes", response_model=ListDiscountCodesResponseDTO)
async def list_discount_codes(
    account_id: int,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    use_case = ListDiscountCodes(
        SqlAlchemyAccountRepository(session),
        SqlAlchemyDiscountCodeRepository(session),
    )
    result = await use_case.execute(account_id, limit=limit, offset=offset)
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{account_id}/discount-codes/redeem",
    response_model=RedemptionResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        402: {"description": "Not enough stamps"},
        502: {
            "description": "Stamps were debited but the code could not be issued",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "PARTIAL_REDEMPTION_FAILURE",
                            "message": "Redemption debit 42 committed but discount code 123456 was not issued",
                            "details": {"ledger_transaction_id": 42, "account_id": 7, "code": "123456"},
                        }
                    }
                }
            },
        },
    },
)
async def redeem_with_stamps(
    account_id: int,
    request: RedeemRequestSchema,
    session: AsyncSession = Depends(get_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    notifier: NotificationService = Depends(get_notification_service),
    config=Depends(get_config),
):
    """
    Exchange stamps for a discount code.

    Redeemable amounts: 500, 1000, 2000, 2500 cents at 200 stamps per dollar.
    """
    use_case = RedeemWithStamps(
        SqlAlchemyUnitOfWork(session),
        build_ledger(session),
        build_code_minter(session, gateway, config),
        SqlAlchemyDiscountCodeRepository(session),
        notifier,
    )
    result = await use_case.execute(
        RedeemCommandDTO(
            account_id=account_id,
            discount_amount=request.discount_amount,
            expire_months=request.expire_months,
        )
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{account_id}/discount-codes/redeem-balance",
    response_model=RedemptionResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def redeem_with_balance(
    account_id: int,
    request: RedeemRequestSchema,
    session: AsyncSession = Depends(get_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    notifier: NotificationService = Depends(get_notification_service),
    config=Depends(get_config),
):
    """Turn whole dollars of balance into a discount code of the same value"""
    use_case = RedeemWithBalance(
        SqlAlchemyUnitOfWork(session),
        build_ledger(session),
        build_code_minter(session, gateway, config),
        SqlAlchemyDiscountCodeRepository(session),
        notifier,
    )
    result = await use_case.execute(
        RedeemCommandDTO(
            account_id=account_id,
            discount_amount=request.discount_amount,
            expire_months=request.expire_months,
        )
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value
