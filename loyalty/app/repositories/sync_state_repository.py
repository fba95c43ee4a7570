"""Sync State Repository Interface

Owns the durable single-flight lease and the per-type cursors.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from loyalty.domain.sync_state import SyncCursor, SyncLease, SyncState


class SyncStateRepository(ABC):

    @abstractmethod
    async def try_acquire_lease(self, name: str, holder: str, now: datetime, expires_at: datetime) -> bool:
        """
        Take the lease if it is not running, or running but expired

        Returns:
            True if this holder now owns the lease
        """
        pass

    @abstractmethod
    async def renew_lease(self, name: str, holder: str, now: datetime, expires_at: datetime) -> bool:
        """
        Push out the expiry of a running lease still owned by holder

        Returns:
            False if the lease was taken over or released meanwhile
        """
        pass

    @abstractmethod
    async def release_lease(self, name: str, holder: str, state: SyncState, now: datetime) -> None:
        """Move the lease out of running into a final state (only for its holder)"""
        pass

    @abstractmethod
    async def get_lease(self, name: str) -> Optional[SyncLease]:
        pass

    @abstractmethod
    async def get_cursor(self, sync_type: str) -> Optional[SyncCursor]:
        pass

    @abstractmethod
    async def save_cursor(self, cursor: SyncCursor) -> SyncCursor:
        pass
