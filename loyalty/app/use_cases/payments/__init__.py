"""Payment use cases"""

from .create_recharge_intent import CreateRechargeIntent
from .create_membership_intent import CreateMembershipIntent
from .create_monthly_card_intent import CreateMonthlyCardIntent
from .confirm_payment import ConfirmPayment
from .renew_monthly_card import RenewMonthlyCard
from .list_monthly_cards import ListMonthlyCards
from .handle_payment_notification import HandlePaymentNotification
from .mapping import to_monthly_card_dto
from .dtos import (
    CreateRechargeCommandDTO,
    CreateMembershipCommandDTO,
    CreateMonthlyCardCommandDTO,
    PaymentIntentResponseDTO,
    PaymentRecordDTO,
    MonthlyCardDTO,
    ListMonthlyCardsResponseDTO,
    NotificationResultDTO,
)

__all__ = [
    "CreateRechargeIntent",
    "CreateMembershipIntent",
    "CreateMonthlyCardIntent",
    "ConfirmPayment",
    "RenewMonthlyCard",
    "ListMonthlyCards",
    "HandlePaymentNotification",
    "to_monthly_card_dto",
    "CreateRechargeCommandDTO",
    "CreateMembershipCommandDTO",
    "CreateMonthlyCardCommandDTO",
    "PaymentIntentResponseDTO",
    "PaymentRecordDTO",
    "MonthlyCardDTO",
    "ListMonthlyCardsResponseDTO",
    "NotificationResultDTO",
]
