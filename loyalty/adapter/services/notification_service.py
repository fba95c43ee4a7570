"""Notification Service Implementations

Operational alerts go to the log and, when configured, to a webhook.
"""

import logging
from typing import Any, Dict, Optional
import httpx
from loyalty.app.services.notification_service import NotificationService
from loyalty.domain.base import utcnow

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs alerts

    Always on, so an alert is never lost when the webhook is down.
    """

    async def send_alert(self, alert_type: str, message: str, context: Dict[str, Any]) -> bool:
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        logger.warning(f"[{alert_type.upper()}] {message} ({details})")
        return True


class WebhookNotificationService(NotificationService):
    """
    Notification service that sends alerts via HTTP webhook

    Sends JSON payload to configured webhook URL.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            webhook_url: URL to POST alerts to
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    async def send_alert(self, alert_type: str, message: str, context: Dict[str, Any]) -> bool:
        """
        Returns:
            True if webhook call succeeded, False otherwise
        """
        payload = {
            "type": alert_type,
            "message": message,
            "context": {key: value if isinstance(value, (int, float, bool)) or value is None else str(value)
                        for key, value in context.items()},
            "sent_at": utcnow().isoformat(),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(f"Webhook notification sent for {alert_type} to {self.webhook_url}")
                return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook notification for {alert_type}: {e}")
            return False


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + webhook).
    """

    def __init__(self, services: list[NotificationService]):
        self.services = services

    async def send_alert(self, alert_type: str, message: str, context: Dict[str, Any]) -> bool:
        """
        Returns:
            True if at least one service succeeded, False otherwise
        """
        success = False
        for service in self.services:
            try:
                if await service.send_alert(alert_type, message, context):
                    success = True
            except Exception as e:
                logger.error(f"Notification service {type(service).__name__} failed: {e}")
        return success


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional webhook URL. If provided, creates composite
                     service with logging + webhook. Otherwise, just logging.
    """
    services: list[NotificationService] = [LoggingNotificationService()]

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
