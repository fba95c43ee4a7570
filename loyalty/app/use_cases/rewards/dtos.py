"""Data Transfer Objects for scheduled reward use cases"""

from datetime import date
from typing import List
from pydantic import BaseModel


class BirthdayRewardsResultDTO(BaseModel):
    day: date
    accounts_checked: int = 0
    rewards_granted: int = 0
    already_rewarded: int = 0
    failures: int = 0
    granted_account_ids: List[int] = []


class MonthlyCardCouponsResultDTO(BaseModel):
    day: date
    cards_checked: int = 0
    coupons_granted: int = 0
    already_granted: int = 0
    failures: int = 0
    coupon_codes: List[str] = []
