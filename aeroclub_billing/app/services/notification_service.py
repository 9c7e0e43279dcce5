"""Notification Service Interface

Defines the contract for sending notifications about payment discrepancies.
"""

from abc import ABC, abstractmethod
from typing import List
from aeroclub_billing.app.use_cases.billing.dtos import PaymentDiscrepancyDTO


class NotificationService(ABC):
    """
    Abstract notification service for sending alerts

    Implementations can send notifications via:
    - Logging
    - Webhook (HTTP POST)
    """

    @abstractmethod
    async def send_discrepancy_alert(self, discrepancies: List[PaymentDiscrepancyDTO]) -> bool:
        """
        Send alert for discrepancies found by the payment audit

        Args:
            discrepancies: Discrepancies to alert about

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass
