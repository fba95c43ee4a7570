"""Reward rules

Fixed program constants: stamps pricing of discount codes, recharge bonus
tiers, membership and monthly card prices, welfare grants, birthday rewards
and order cashback. All amounts are integer cents.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from loyalty.domain.account import Account, Tier
from loyalty.domain.discount_code import CodeType

STAMPS_PER_DOLLAR = 200

# discount amount (cents) -> stamps cost
STAMPS_REWARD_TABLE = {
    amount: amount // 100 * STAMPS_PER_DOLLAR for amount in (500, 1000, 2000, 2500)
}

# Exact-match recharge tiers (cents -> bonus rate), no interpolation
RECHARGE_BONUS_TIERS = {
    10000: Decimal("0.15"),
    20000: Decimal("0.175"),
    30000: Decimal("0.25"),
    50000: Decimal("0.30"),
}

MEMBERSHIP_PRICES = {
    Tier.SHAREHOLDER: 800,
    Tier.SUPER_SHAREHOLDER: 3000,
}

MEMBERSHIP_DURATION_DAYS = 365

# tier -> (code type, amount in cents, number of codes, expire months)
MEMBERSHIP_WELFARE = {
    Tier.SHAREHOLDER: (CodeType.SHAREHOLDER_REWARD, 800, 1, 1),
    Tier.SUPER_SHAREHOLDER: (CodeType.SUPER_SHAREHOLDER_REWARD, 300, 10, 1),
}

CASHBACK_RATES = {
    Tier.FAN: Decimal("0"),
    Tier.SHAREHOLDER: Decimal("0.05"),
    Tier.SUPER_SHAREHOLDER: Decimal("0.10"),
}

BIRTHDAY_REWARDS = {
    Tier.FAN: 50,
    Tier.SHAREHOLDER: 550,
    Tier.SUPER_SHAREHOLDER: 800,
}

MONTHLY_CARD_PRICE = 2000
MONTHLY_CARD_DAYS = 30
# (code type, amount in cents, expire months) granted once per day while a card is active
MONTHLY_CARD_DAILY_COUPON = (CodeType.SWEETS_CREDITS_REWARD, 550, 1)

MAX_EXPIRE_MONTHS = 3
DAYS_PER_MONTH = 30


def stamps_cost(discount_amount: int) -> Optional[int]:
    return STAMPS_REWARD_TABLE.get(discount_amount)


def recharge_bonus(amount: int) -> int:
    """Bonus for an exact tier amount, 0 for anything else"""
    rate = RECHARGE_BONUS_TIERS.get(amount)
    if rate is None:
        return 0
    return int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_recharge_tier(amount: int) -> bool:
    return amount in RECHARGE_BONUS_TIERS


def cashback_for(account: Account, price: int) -> int:
    """Order cashback in cents; only active paid members earn it"""
    if price <= 0 or not account.is_active_paid_member():
        return 0
    rate = CASHBACK_RATES[account.tier]
    return int(Decimal(price) * rate)


def membership_price(target: Tier) -> Optional[int]:
    return MEMBERSHIP_PRICES.get(target)


def code_expires_at(issued_at: datetime, expire_months: int) -> datetime:
    return issued_at + timedelta(days=DAYS_PER_MONTH * expire_months)


def birthday_reward_for(account: Account, now: Optional[datetime] = None) -> int:
    """A lapsed paid membership earns the fan amount"""
    tier = account.tier if account.is_active_paid_member(now) else Tier.FAN
    return BIRTHDAY_REWARDS[tier]


def birthdays_celebrated_on(day: date) -> List[Tuple[int, int]]:
    """(month, day) pairs celebrated on day; Feb 29 birthdays fall on Feb 28 in common years"""
    pairs = [(day.month, day.day)]
    if day.month == 2 and day.day == 28:
        try:
            date(day.year, 2, 29)
        except ValueError:
            pairs.append((2, 29))
    return pairs
