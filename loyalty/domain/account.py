"""Account Domain Entity

A program member. Balance and stamps are a cached projection of the ledger
and change only through the ledger engine.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String
from loyalty.domain.base import BaseModel, BigIntPK, utcnow

MEMBER_CODE_MIN = 1000000001
MEMBER_CODE_MAX = 9999999999


class Tier(str, Enum):
    """Membership tiers"""
    FAN = "fan"
    SHAREHOLDER = "shareholder"
    SUPER_SHAREHOLDER = "super_shareholder"


class Account(BaseModel, table=True):
    """
    Account - program member holding a balance and a stamps balance

    Domain Rules:
    - member_code is a unique 10-digit number (1000000001-9999999999)
    - balance (cents) and stamps are never negative
    - balance/stamps mutate only through the ledger engine
    - referrer_id points to an account that existed before this one (acyclic)
    - Accounts are never hard-deleted
    - birthday_month/birthday_day mirror birthday so the daily reward can
      find today's birthdays through an index
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="account_balance_non_negative"),
        CheckConstraint("stamps >= 0", name="account_stamps_non_negative"),
        Index("ix_accounts_birthday_month_day", "birthday_month", "birthday_day"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntPK, primary_key=True, autoincrement=True),
    )

    member_code: str = Field(
        sa_column=Column(String(10), unique=True, index=True, nullable=False),
        description="Unique 10-digit membership code",
    )

    display_name: str = Field(default="", max_length=100)

    phone: Optional[str] = Field(
        default=None,
        sa_column=Column(String(32), unique=True, nullable=True),
    )

    tier: Tier = Field(default=Tier.FAN)

    balance: int = Field(
        default=0,
        sa_column=Column(BigInteger, nullable=False, default=0),
        description="Monetary balance in cents",
    )

    stamps: int = Field(
        default=0,
        sa_column=Column(BigInteger, nullable=False, default=0),
    )

    referrer_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=True, index=True),
    )

    membership_expires_at: Optional[datetime] = Field(default=None)

    birthday: Optional[date] = Field(default=None)
    birthday_month: Optional[int] = Field(default=None)
    birthday_day: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_active_paid_member(self, now: Optional[datetime] = None) -> bool:
        """Paid tier with a membership that has not expired yet"""
        if self.tier == Tier.FAN or self.membership_expires_at is None:
            return False
        return self.membership_expires_at > (now or utcnow())

    def set_birthday(self, birthday: Optional[date]) -> None:
        self.birthday = birthday
        self.birthday_month = birthday.month if birthday else None
        self.birthday_day = birthday.day if birthday else None
