"""Request schemas for the Accounts API"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class OpenAccountRequestSchema(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    referrer_member_code: Optional[str] = Field(
        default=None,
        min_length=10,
        max_length=10,
        description="Member code of the referring account",
    )
    birthday: Optional[date] = Field(default=None, description="YYYY-MM-DD, drives the yearly birthday reward")


class UpdateProfileRequestSchema(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    birthday: Optional[date] = Field(default=None, description="YYYY-MM-DD")


class RedeemRequestSchema(BaseModel):
    """
    Request schema for redeeming a discount code

    Used for POST /accounts/{id}/discount-codes/redeem and /redeem-balance.
    """

    discount_amount: int = Field(..., gt=0, description="Discount in cents, e.g. 500 for $5")
    expire_months: int = Field(default=1, description="Validity in months (1-3)")


class RechargeRequestSchema(BaseModel):
    amount: int = Field(..., gt=0, description="Recharge amount in cents")


class MembershipRequestSchema(BaseModel):
    target_tier: str = Field(..., description="shareholder or super_shareholder")


class MonthlyCardRequestSchema(BaseModel):
    plan_type: str = Field(default="one_time", description="one_time or subscription")
