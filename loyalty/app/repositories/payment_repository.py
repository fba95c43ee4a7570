"""Payment Record Repository Interfaces

Records are looked up by the upstream payment reference, which is unique.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional
from loyalty.domain.payment import MembershipPurchase, MonthlyCard, PaymentStatus, RechargeRecord


class RechargeRecordRepository(ABC):

    @abstractmethod
    async def create(self, record: RechargeRecord) -> RechargeRecord:
        pass

    @abstractmethod
    async def get_by_reference(self, payment_reference: str, for_update: bool = False) -> Optional[RechargeRecord]:
        """
        Args:
            payment_reference: Upstream payment reference
            for_update: If True, lock the row and reload its current state
        """
        pass

    @abstractmethod
    async def save(self, record: RechargeRecord) -> RechargeRecord:
        pass


class MembershipPurchaseRepository(ABC):

    @abstractmethod
    async def create(self, purchase: MembershipPurchase) -> MembershipPurchase:
        pass

    @abstractmethod
    async def get_by_reference(self, payment_reference: str, for_update: bool = False) -> Optional[MembershipPurchase]:
        pass

    @abstractmethod
    async def save(self, purchase: MembershipPurchase) -> MembershipPurchase:
        pass

    @abstractmethod
    async def complete_pending(
        self,
        payment_reference: str,
        status: PaymentStatus,
        upstream_status: Optional[str],
        now: datetime,
    ) -> bool:
        """
        Move a pending purchase to a terminal status

        Returns:
            True if this call made the transition, False if the purchase was
            no longer pending
        """
        pass


class MonthlyCardRepository(ABC):
    """
    Monthly card persistence

    State changes are conditional UPDATEs so that a confirm racing a webhook,
    two renewals of one invoice, or two coupon runs on one day each take
    effect once.
    """

    @abstractmethod
    async def create(self, card: MonthlyCard) -> MonthlyCard:
        pass

    @abstractmethod
    async def get_by_reference(self, payment_reference: str, for_update: bool = False) -> Optional[MonthlyCard]:
        pass

    @abstractmethod
    async def get_by_subscription_reference(self, subscription_reference: str) -> Optional[MonthlyCard]:
        pass

    @abstractmethod
    async def get_active_for_account(self, account_id: int, now: datetime) -> Optional[MonthlyCard]:
        pass

    @abstractmethod
    async def get_by_account_id(self, account_id: int) -> List[MonthlyCard]:
        """Newest first"""
        pass

    @abstractmethod
    async def list_active(self, now: datetime) -> List[MonthlyCard]:
        pass

    @abstractmethod
    async def complete_pending(
        self,
        payment_reference: str,
        status: PaymentStatus,
        upstream_status: Optional[str],
        now: datetime,
        starts_at: Optional[datetime] = None,
        ends_at: Optional[datetime] = None,
    ) -> bool:
        """
        Move a pending card to a terminal status, setting its period

        Returns:
            True if this call made the transition
        """
        pass

    @abstractmethod
    async def extend(
        self,
        card_id: int,
        renewal_reference: str,
        subscription_reference: str,
        ends_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Apply one renewal

        Returns:
            False if renewal_reference was already applied to the card
        """
        pass

    @abstractmethod
    async def claim_coupon_day(self, card_id: int, day: date, now: datetime) -> bool:
        """
        Mark day as served for the card

        Returns:
            False if the day was already served
        """
        pass

    @abstractmethod
    async def release_coupon_day(self, card_id: int, day: date, previous: Optional[date]) -> None:
        """Undo a claim whose coupon could not be issued"""
        pass
