"""Data Transfer Objects for Discount Code Use Cases"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class RedeemCommandDTO(BaseModel):
    account_id: int
    discount_amount: int = Field(..., description="Discount in cents")
    expire_months: int = Field(default=1, description="Validity in months (1-3)")


class IssueWelfareCommandDTO(BaseModel):
    account_id: int
    amount: int = Field(..., description="Discount in cents")
    code_type: str
    expire_months: int = 1


class ReverseRedemptionCommandDTO(BaseModel):
    ledger_transaction_id: int
    reason: str = Field(..., min_length=1, max_length=300)


class DiscountCodeDTO(BaseModel):
    id: int
    account_id: int
    code: str
    discount_amount: int
    code_type: str
    status: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    external_id: Optional[str] = None
    ledger_transaction_id: Optional[int] = None
    created_at: datetime


class RedemptionResponseDTO(BaseModel):
    discount_code: DiscountCodeDTO
    ledger_transaction_id: int
    balance_spent: int
    stamps_spent: int
    balance_after: int
    stamps_after: int


class ReversalResponseDTO(BaseModel):
    reversal_transaction_id: int
    original_transaction_id: int
    account_id: int
    balance_restored: int
    stamps_restored: int
    balance_after: int
    stamps_after: int


class ListDiscountCodesResponseDTO(BaseModel):
    discount_codes: List[DiscountCodeDTO]
    total: int
    limit: int
    offset: int
