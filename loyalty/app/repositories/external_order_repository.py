"""External Order Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from loyalty.domain.external_order import ExternalOrder


class ExternalOrderRepository(ABC):

    @abstractmethod
    async def get_by_external_id(self, external_id: int) -> Optional[ExternalOrder]:
        pass

    @abstractmethod
    async def create(self, order: ExternalOrder) -> ExternalOrder:
        """
        Raises:
            IntegrityError: If the external id was already ingested
        """
        pass

    @abstractmethod
    async def update_status(self, external_id: int, order_status: int) -> None:
        pass

    @abstractmethod
    async def get_by_account_id(
        self,
        account_id: int,
        order_status: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[ExternalOrder], int]:
        """Orders of one account, newest first by upstream creation time, with the total count"""
        pass

