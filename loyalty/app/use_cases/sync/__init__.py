"""External sync use cases"""

from .run_sync_cycle import RunSyncCycle, SyncSettings
from .get_sync_status import GetSyncStatus
from .dtos import SyncRequestDTO, SyncCycleResultDTO, SyncStatusDTO

__all__ = [
    "RunSyncCycle",
    "SyncSettings",
    "GetSyncStatus",
    "SyncRequestDTO",
    "SyncCycleResultDTO",
    "SyncStatusDTO",
]
