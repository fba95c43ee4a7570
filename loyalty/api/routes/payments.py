"""Payments API Routes

Recharges, membership purchases, monthly cards, confirmation and the Stripe
webhook.
"""

from fastapi import APIRouter, Depends, Header, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from loyalty.adapter.factory import (
    build_confirm_payment,
    build_create_monthly_card_intent,
    build_handle_payment_notification,
)
from loyalty.adapter.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyMembershipPurchaseRepository,
    SqlAlchemyMonthlyCardRepository,
    SqlAlchemyRechargeRecordRepository,
)
from loyalty.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from loyalty.api.error import ClientError
from loyalty.api.schemas.account_request import (
    MembershipRequestSchema,
    MonthlyCardRequestSchema,
    RechargeRequestSchema,
)
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.services.payment_gateway import PaymentGateway
from loyalty.app.use_cases.payments import (
    CreateMembershipCommandDTO,
    CreateMembershipIntent,
    CreateRechargeCommandDTO,
    CreateMonthlyCardCommandDTO,
    CreateRechargeIntent,
    ListMonthlyCards,
    ListMonthlyCardsResponseDTO,
    NotificationResultDTO,
    PaymentIntentResponseDTO,
    PaymentRecordDTO,
)
from loyalty.depends import get_config, get_order_gateway, get_payment_gateway, get_session

router = APIRouter(tags=["Payments"])


@router.post(
    "/accounts/{account_id}/recharges",
    response_model=PaymentIntentResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def create_recharge(
    account_id: int,
    request: RechargeRequestSchema,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    config=Depends(get_config),
):
    """
    Start a balance recharge.

    Tier amounts earn a bonus on confirmation: $100 15%, $200 17.5%,
    $300 25%, $500 30%.
    """
    use_case = CreateRechargeIntent(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        SqlAlchemyRechargeRecordRepository(session),
        payment_gateway,
        min_amount=config.RECHARGE_MIN_AMOUNT,
        max_amount=config.RECHARGE_MAX_AMOUNT,
        allow_non_tier_amounts=config.RECHARGE_ALLOW_NON_TIER_AMOUNTS,
    )
    result = await use_case.execute(CreateRechargeCommandDTO(account_id=account_id, amount=request.amount))
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/accounts/{account_id}/memberships",
    response_model=PaymentIntentResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def create_membership(
    account_id: int,
    request: MembershipRequestSchema,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
):
    use_case = CreateMembershipIntent(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        SqlAlchemyMembershipPurchaseRepository(session),
        payment_gateway,
    )
    result = await use_case.execute(
        CreateMembershipCommandDTO(account_id=account_id, target_tier=request.target_tier)
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/accounts/{account_id}/monthly-cards",
    response_model=PaymentIntentResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def create_monthly_card(
    account_id: int,
    request: MonthlyCardRequestSchema,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Buy a $20 monthly card running 30 days from confirmation.

    A running card earns one $5.50 sweets credit code per day. With
    `plan_type` subscription every paid renewal invoice adds 30 days.
    """
    use_case = build_create_monthly_card_intent(session, payment_gateway)
    result = await use_case.execute(
        CreateMonthlyCardCommandDTO(account_id=account_id, plan_type=request.plan_type)
    )
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/accounts/{account_id}/monthly-cards", response_model=ListMonthlyCardsResponseDTO)
async def list_monthly_cards(account_id: int, session: AsyncSession = Depends(get_session)):
    use_case = ListMonthlyCards(
        SqlAlchemyAccountRepository(session),
        SqlAlchemyMonthlyCardRepository(session),
    )
    result = await use_case.execute(account_id)
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/payments/{payment_reference}/confirm", response_model=PaymentRecordDTO)
async def confirm_payment(
    payment_reference: str,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    order_gateway: OrderGateway = Depends(get_order_gateway),
    config=Depends(get_config),
):
    """
    Confirm a payment with the payment platform.

    Safe to call any number of times, also concurrently with the webhook:
    the payment's effect is applied once. A still pending payment is
    returned unchanged.
    """
    use_case = build_confirm_payment(session, payment_gateway, order_gateway, config)
    result = await use_case.execute(payment_reference)
    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/webhooks/stripe", response_model=NotificationResultDTO)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default="", alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    order_gateway: OrderGateway = Depends(get_order_gateway),
    config=Depends(get_config),
):
    payload = await request.body()
    use_case = build_handle_payment_notification(session, payment_gateway, order_gateway, config)
    result = await use_case.execute(payload, stripe_signature)
    if result.is_err():
        raise ClientError(result.error)
    return result.value
