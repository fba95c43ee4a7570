"""Scheduled reward use cases"""

from .grant_birthday_rewards import GrantBirthdayRewards, birthday_idempotency_key
from .grant_monthly_card_coupons import GrantMonthlyCardCoupons
from .dtos import BirthdayRewardsResultDTO, MonthlyCardCouponsResultDTO

__all__ = [
    "GrantBirthdayRewards",
    "GrantMonthlyCardCoupons",
    "birthday_idempotency_key",
    "BirthdayRewardsResultDTO",
    "MonthlyCardCouponsResultDTO",
]
