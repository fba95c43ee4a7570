"""Use case assembly

Builds use cases on top of one AsyncSession, shared by the API routes and the
workers so both wire repositories and gateways the same way.
"""

from sqlmodel.ext.asyncio.session import AsyncSession

from loyalty.adapter.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyDiscountCodeRepository,
    SqlAlchemyExternalOrderRepository,
    SqlAlchemyLedgerTransactionRepository,
    SqlAlchemyMembershipPurchaseRepository,
    SqlAlchemyMonthlyCardRepository,
    SqlAlchemyRechargeRecordRepository,
    SqlAlchemySyncStateRepository,
)
from loyalty.adapter.services.sevencloud_gateway import SevenCloudGateway
from loyalty.adapter.services.stripe_gateway import StripePaymentGateway
from loyalty.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from loyalty.app.services.code_minter import CodeMinter
from loyalty.app.services.ledger_engine import LedgerEngine
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.services.payment_gateway import PaymentGateway
from loyalty.app.services.retry import RetryPolicy
from loyalty.app.use_cases.accounts import ListOrders, OpenAccount
from loyalty.app.use_cases.discount_codes import IssueWelfareCode
from loyalty.app.use_cases.payments import (
    ConfirmPayment,
    CreateMonthlyCardIntent,
    HandlePaymentNotification,
    RenewMonthlyCard,
)
from loyalty.app.use_cases.rewards import GrantBirthdayRewards, GrantMonthlyCardCoupons
from loyalty.app.use_cases.sync import RunSyncCycle, SyncSettings


def retry_policy_from_config(config) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.UPSTREAM_MAX_ATTEMPTS,
        base_backoff_seconds=config.UPSTREAM_BACKOFF_SECONDS,
        backoff_multiplier=config.UPSTREAM_BACKOFF_MULTIPLIER,
        max_backoff_seconds=config.UPSTREAM_MAX_BACKOFF_SECONDS,
    )


def sync_settings_from_config(config) -> SyncSettings:
    return SyncSettings(
        order_page_size=config.SYNC_ORDER_PAGE_SIZE,
        coupon_page_size=config.SYNC_COUPON_PAGE_SIZE,
        initial_lookback_hours=config.SYNC_INITIAL_LOOKBACK_HOURS,
        full_window_hours=config.SYNC_FULL_WINDOW_HOURS,
        lease_ttl_seconds=config.SYNC_LEASE_TTL_SECONDS,
        order_stamps_reward=config.ORDER_STAMPS_REWARD,
        order_cashback_enabled=config.ORDER_CASHBACK_ENABLED,
    )


def create_order_gateway(config) -> OrderGateway:
    return SevenCloudGateway(
        base_url=config.SEVENCLOUD_BASE_URL,
        username=config.SEVENCLOUD_USERNAME,
        password=config.SEVENCLOUD_PASSWORD,
        timeout=config.SEVENCLOUD_TIMEOUT_SECONDS,
    )


def create_payment_gateway(config) -> PaymentGateway:
    return StripePaymentGateway(
        secret_key=config.STRIPE_SECRET_KEY,
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        currency=config.STRIPE_CURRENCY,
    )


def build_ledger(session: AsyncSession) -> LedgerEngine:
    return LedgerEngine(
        SqlAlchemyAccountRepository(session),
        SqlAlchemyLedgerTransactionRepository(session),
    )


def build_code_minter(session: AsyncSession, gateway: OrderGateway, config) -> CodeMinter:
    return CodeMinter(
        gateway,
        SqlAlchemyDiscountCodeRepository(session),
        retry_policy_from_config(config),
    )


def build_issue_welfare_code(session: AsyncSession, gateway: OrderGateway, config) -> IssueWelfareCode:
    return IssueWelfareCode(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        build_code_minter(session, gateway, config),
        SqlAlchemyDiscountCodeRepository(session),
    )


def build_open_account(session: AsyncSession, gateway: OrderGateway, config) -> OpenAccount:
    return OpenAccount(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        welfare_issuer=build_issue_welfare_code(session, gateway, config),
        welfare_amount=config.REGISTRATION_WELFARE_AMOUNT,
        referrer_requires_paid_tier=config.REFERRER_REQUIRES_PAID_TIER,
    )


def build_confirm_payment(
    session: AsyncSession,
    payment_gateway: PaymentGateway,
    order_gateway: OrderGateway,
    config,
) -> ConfirmPayment:
    return ConfirmPayment(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        SqlAlchemyRechargeRecordRepository(session),
        SqlAlchemyMembershipPurchaseRepository(session),
        build_ledger(session),
        payment_gateway,
        welfare_issuer=build_issue_welfare_code(session, order_gateway, config),
        retry_policy=retry_policy_from_config(config),
        card_repo=SqlAlchemyMonthlyCardRepository(session),
    )


def build_create_monthly_card_intent(session: AsyncSession, payment_gateway: PaymentGateway) -> CreateMonthlyCardIntent:
    return CreateMonthlyCardIntent(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        SqlAlchemyMonthlyCardRepository(session),
        payment_gateway,
    )


def build_renew_monthly_card(session: AsyncSession) -> RenewMonthlyCard:
    return RenewMonthlyCard(SqlAlchemyUnitOfWork(session), SqlAlchemyMonthlyCardRepository(session))


def build_handle_payment_notification(
    session: AsyncSession,
    payment_gateway: PaymentGateway,
    order_gateway: OrderGateway,
    config,
) -> HandlePaymentNotification:
    return HandlePaymentNotification(
        payment_gateway,
        build_confirm_payment(session, payment_gateway, order_gateway, config),
        card_renewer=build_renew_monthly_card(session),
    )


def build_list_orders(session: AsyncSession) -> ListOrders:
    return ListOrders(SqlAlchemyAccountRepository(session), SqlAlchemyExternalOrderRepository(session))


def build_grant_birthday_rewards(session: AsyncSession) -> GrantBirthdayRewards:
    return GrantBirthdayRewards(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyAccountRepository(session),
        SqlAlchemyLedgerTransactionRepository(session),
        build_ledger(session),
    )


def build_grant_monthly_card_coupons(session: AsyncSession, gateway: OrderGateway, config) -> GrantMonthlyCardCoupons:
    return GrantMonthlyCardCoupons(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMonthlyCardRepository(session),
        build_issue_welfare_code(session, gateway, config),
    )


def build_run_sync_cycle(
    session: AsyncSession,
    gateway: OrderGateway,
    notifier: NotificationService,
    config,
) -> RunSyncCycle:
    return RunSyncCycle(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySyncStateRepository(session),
        SqlAlchemyAccountRepository(session),
        SqlAlchemyExternalOrderRepository(session),
        SqlAlchemyDiscountCodeRepository(session),
        build_ledger(session),
        gateway,
        notifier=notifier,
        retry_policy=retry_policy_from_config(config),
        settings=sync_settings_from_config(config),
    )
