"""Notification Service Implementations

Provides concrete implementations for sending payment audit alerts.
"""

import logging
from typing import List, Optional
import httpx
from aeroclub_billing.app.services.notification_service import NotificationService
from aeroclub_billing.app.use_cases.billing.dtos import PaymentDiscrepancyDTO

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs alerts

    Useful for development and testing, or as a fallback.
    """

    async def send_discrepancy_alert(self, discrepancies: List[PaymentDiscrepancyDTO]) -> bool:
        for d in discrepancies:
            logger.warning(
                f"[PAYMENT AUDIT] {d.kind}: invoice={d.invoice_id}, payment={d.payment_id}, "
                f"expected={d.expected}, actual={d.actual}"
            )
        return True


class WebhookNotificationService(NotificationService):
    """
    Notification service that sends alerts via HTTP webhook

    Sends JSON payload to configured webhook URL.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        Initialize webhook notification service

        Args:
            webhook_url: URL to POST alerts to
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def send_discrepancy_alert(self, discrepancies: List[PaymentDiscrepancyDTO]) -> bool:
        """
        Send discrepancy alert via webhook

        Args:
            discrepancies: Discrepancies to alert about

        Returns:
            True if webhook call succeeded, False otherwise
        """
        payload = {
            "type": "payment_audit_alert",
            "discrepancies_found": len(discrepancies),
            "discrepancies": [d.model_dump(mode="json") for d in discrepancies],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(
                    f"Webhook notification sent for {len(discrepancies)} discrepancies to {self.webhook_url}"
                )
                return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to send payment audit webhook: {e}")
            return False


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + webhook).
    """

    def __init__(self, services: List[NotificationService]):
        self.services = services

    async def send_discrepancy_alert(self, discrepancies: List[PaymentDiscrepancyDTO]) -> bool:
        """
        Send alert to all configured services

        Returns:
            True if at least one service succeeded, False otherwise
        """
        success = False
        for service in self.services:
            if await service.send_discrepancy_alert(discrepancies):
                success = True
        return success


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional webhook URL. If provided, creates composite
                     service with logging + webhook. Otherwise, just logging.

    Returns:
        Configured NotificationService
    """
    services: List[NotificationService] = [LoggingNotificationService()]

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
