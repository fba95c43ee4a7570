"""Data Transfer Objects for Payment Use Cases"""

from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CreateRechargeCommandDTO(BaseModel):
    account_id: int
    amount: int = Field(..., description="Recharge amount in cents")


class CreateMembershipCommandDTO(BaseModel):
    account_id: int
    target_tier: str


class CreateMonthlyCardCommandDTO(BaseModel):
    account_id: int
    plan_type: str = "one_time"


class PaymentIntentResponseDTO(BaseModel):
    payment_reference: str
    client_secret: Optional[str] = None
    account_id: int
    amount: int
    bonus_amount: int = 0
    total_amount: int
    target_tier: Optional[str] = None
    plan_type: Optional[str] = None
    status: str


class PaymentRecordDTO(BaseModel):
    kind: str = Field(..., description="recharge, membership or monthly_card")
    payment_reference: str
    account_id: int
    status: str
    upstream_status: Optional[str] = None
    amount: int
    bonus_amount: int = 0
    total_amount: int
    target_tier: Optional[str] = None
    ledger_transaction_id: Optional[int] = None
    welfare_codes_issued: int = 0
    welfare_codes_failed: int = 0
    plan_type: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    updated_at: datetime


class MonthlyCardDTO(BaseModel):
    id: int
    account_id: int
    payment_reference: str
    plan_type: str
    amount: int
    status: str
    active: bool
    subscription_reference: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    last_coupon_granted_on: Optional[date] = None
    created_at: datetime


class ListMonthlyCardsResponseDTO(BaseModel):
    monthly_cards: List[MonthlyCardDTO]


class NotificationResultDTO(BaseModel):
    handled: bool
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    payment: Optional[PaymentRecordDTO] = None
    monthly_card: Optional[MonthlyCardDTO] = None
