"""Sync State Domain Entities

SyncCursor keeps the watermark per sync type; SyncLease is the durable
single-flight permit shared by timer-driven and manual sync cycles.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import String
from loyalty.domain.base import BaseModel, utcnow

SYNC_LEASE_NAME = "external_sync"


class SyncMode(str, Enum):
    INCREMENTAL = "incremental"
    FULL = "full"
    MANUAL = "manual"


class SyncState(str, Enum):
    """Idle -> Running -> Completed | Failed"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncCursor(BaseModel, table=True):
    """
    Watermark for one sync type

    Domain Rules:
    - Only advanced by a successful cycle, to that cycle's window end
    - A failed cycle records last_error but keeps the watermark
    """

    __tablename__ = "sync_cursors"

    sync_type: str = Field(sa_column=Column(String(32), primary_key=True))
    watermark: Optional[datetime] = Field(default=None)
    last_status: SyncState = Field(default=SyncState.IDLE)
    last_error: Optional[str] = Field(default=None, max_length=1000)
    last_started_at: Optional[datetime] = Field(default=None)
    last_finished_at: Optional[datetime] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)


class SyncLease(BaseModel, table=True):
    """
    Single-flight permit

    Domain Rules:
    - At most one holder while state == running and expires_at is in the future
    - An expired running lease may be taken over (crashed holder)
    """

    __tablename__ = "sync_leases"

    name: str = Field(sa_column=Column(String(64), primary_key=True))
    state: SyncState = Field(default=SyncState.IDLE)
    holder: Optional[str] = Field(default=None, max_length=128)
    acquired_at: Optional[datetime] = Field(default=None)
    expires_at: Optional[datetime] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)
