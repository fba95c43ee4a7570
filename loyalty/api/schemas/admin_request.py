"""Request schemas for operator endpoints"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ReverseRedemptionRequestSchema(BaseModel):
    reason: str = Field(..., min_length=1, max_length=300)


class IssueWelfareRequestSchema(BaseModel):
    amount: int = Field(..., gt=0, description="Discount in cents")
    code_type: str = Field(default="sweets_credits_reward")
    expire_months: int = Field(default=1)


class SyncTriggerRequestSchema(BaseModel):
    mode: str = Field(default="incremental", pattern="^(incremental|full|manual)$")
    start: Optional[datetime] = Field(default=None, description="Window start, manual mode only")
    end: Optional[datetime] = Field(default=None, description="Window end, manual mode only")
