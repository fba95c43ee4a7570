"""Get Sync Status Use Case"""

from libs.result import Result, Return
from loyalty.app.repositories.sync_state_repository import SyncStateRepository
from loyalty.domain.sync_state import SYNC_LEASE_NAME, SyncMode, SyncState
from .dtos import SyncCursorDTO, SyncStatusDTO


class GetSyncStatus:
    """Lease state plus the incremental and full cursors"""

    def __init__(self, sync_repo: SyncStateRepository):
        self.sync_repo = sync_repo

    async def execute(self) -> Result[SyncStatusDTO]:
        lease = await self.sync_repo.get_lease(SYNC_LEASE_NAME)

        cursors = []
        for mode in (SyncMode.INCREMENTAL, SyncMode.FULL):
            cursor = await self.sync_repo.get_cursor(mode.value)
            if cursor is None:
                continue
            cursors.append(
                SyncCursorDTO(
                    sync_type=cursor.sync_type,
                    watermark=cursor.watermark,
                    last_status=cursor.last_status.value,
                    last_error=cursor.last_error,
                    last_started_at=cursor.last_started_at,
                    last_finished_at=cursor.last_finished_at,
                )
            )

        return Return.ok(
            SyncStatusDTO(
                state=lease.state.value if lease else SyncState.IDLE.value,
                holder=lease.holder if lease else None,
                acquired_at=lease.acquired_at if lease else None,
                expires_at=lease.expires_at if lease else None,
                cursors=cursors,
            )
        )
