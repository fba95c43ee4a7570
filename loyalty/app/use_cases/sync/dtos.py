"""Data Transfer Objects for Sync Use Cases"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class SyncRequestDTO(BaseModel):
    mode: str = Field(default="incremental", description="incremental, full or manual")
    start: Optional[datetime] = Field(default=None, description="Window start (manual mode)")
    end: Optional[datetime] = Field(default=None, description="Window end (manual mode)")


class SyncCycleResultDTO(BaseModel):
    mode: str
    state: str
    window_start: datetime
    window_end: datetime
    pages_fetched: int = 0
    orders_seen: int = 0
    orders_ingested: int = 0
    orders_updated: int = 0
    orders_skipped: int = 0
    coupons_seen: int = 0
    coupons_marked_used: int = 0
    record_failures: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = Field(default=None, description="SYNC_FAILED or SYNC_LEASE_LOST when the cycle failed")
    started_at: datetime
    finished_at: datetime


class SyncCursorDTO(BaseModel):
    sync_type: str
    watermark: Optional[datetime] = None
    last_status: str
    last_error: Optional[str] = None
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None


class SyncStatusDTO(BaseModel):
    state: str
    holder: Optional[str] = None
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    cursors: List[SyncCursorDTO]
