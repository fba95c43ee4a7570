"""Data Transfer Objects for Account Use Cases"""

from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class OpenAccountCommandDTO(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    referrer_member_code: Optional[str] = Field(
        default=None,
        description="Member code of the referring account",
    )
    birthday: Optional[date] = None


class AccountResponseDTO(BaseModel):
    account_id: int
    member_code: str
    display_name: str
    tier: str
    balance: int
    stamps: int
    referrer_id: Optional[int] = None
    membership_expires_at: Optional[datetime] = None
    birthday: Optional[date] = None
    created_at: datetime


class OpenAccountResponseDTO(BaseModel):
    account: AccountResponseDTO
    welfare_code_issued: bool = Field(
        default=False,
        description="False when a configured registration gift could not be minted",
    )
    welfare_code: Optional[str] = None


class UpdateProfileCommandDTO(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    birthday: Optional[date] = None


class BalanceResponseDTO(BaseModel):
    account_id: int
    member_code: str
    tier: str
    balance: int = Field(..., description="Balance in cents")
    stamps: int
    membership_expires_at: Optional[datetime] = None
    last_updated: datetime


class TransactionDTO(BaseModel):
    id: int
    kind: str
    balance_delta: int
    stamps_delta: int
    balance_after: int
    stamps_after: int
    related_order_id: Optional[int] = None
    related_discount_code: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime


class ListTransactionsResponseDTO(BaseModel):
    transactions: List[TransactionDTO]
    total: int
    limit: int
    offset: int


class LedgerDiscrepancyDTO(BaseModel):
    account_id: int
    member_code: str
    account_balance: int
    replayed_balance: int
    account_stamps: int
    replayed_stamps: int
    broken_transaction_id: Optional[int] = Field(
        default=None,
        description="First transaction whose snapshot disagrees with the replay",
    )


class ReconciliationResultDTO(BaseModel):
    total_accounts_checked: int
    discrepancies_found: int
    discrepancies: List[LedgerDiscrepancyDTO]
    reconciliation_time: datetime
    execution_time_ms: int


class ExpireMembershipsResultDTO(BaseModel):
    expired_accounts: int
    account_ids: List[int]


class OrderDTO(BaseModel):
    external_id: int
    price: int = Field(..., description="Price in cents")
    product_name: str
    product_no: Optional[str] = None
    order_status: int
    pay_type: Optional[int] = None
    stamps_earned: int
    cashback_earned: int
    external_created_at: datetime


class ListOrdersResponseDTO(BaseModel):
    orders: List[OrderDTO]
    total: int
    limit: int
    offset: int
