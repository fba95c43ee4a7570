"""Payment Gateway Interface"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
from pydantic import BaseModel
from loyalty.domain.payment import PaymentStatus


class PaymentIntentHandle(BaseModel):
    """Client-usable handle for a created payment, opaque to the ledger"""

    reference: str
    client_secret: Optional[str] = None
    upstream_status: Optional[str] = None


class PaymentNotification(BaseModel):
    """Signature-verified upstream notification"""

    event_id: str
    event_type: str
    reference: str
    status: PaymentStatus
    upstream_status: Optional[str] = None
    subscription_reference: Optional[str] = None
    card_reference: Optional[str] = None

    @property
    def is_renewal(self) -> bool:
        return self.subscription_reference is not None


class PaymentGateway(ABC):

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: int,
        metadata: Dict[str, str],
        description: Optional[str] = None,
    ) -> PaymentIntentHandle:
        pass

    @abstractmethod
    async def retrieve_status(self, reference: str) -> PaymentStatus:
        pass

    @abstractmethod
    def verify_notification(self, payload: bytes, signature: str) -> Optional[PaymentNotification]:
        """
        Verify and decode an upstream notification

        Returns:
            The notification, or None for event types this service ignores

        Raises:
            ValidationError: If the signature or payload is invalid
        """
        pass
