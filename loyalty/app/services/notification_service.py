"""Notification Service Interface

Operational alerts for failures that need a human: redemptions whose debit
committed without a delivered code, failed sync cycles and ledger
discrepancies.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class NotificationService(ABC):
    """
    Abstract notification service for operational alerts

    Implementations can send notifications via:
    - Logging
    - Webhook (HTTP POST)
    """

    @abstractmethod
    async def send_alert(self, alert_type: str, message: str, context: Dict[str, Any]) -> bool:
        """
        Send an operational alert

        Args:
            alert_type: Stable alert type, e.g. "partial_redemption"
            message: Human readable summary
            context: Identifiers needed for manual reconciliation

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass
