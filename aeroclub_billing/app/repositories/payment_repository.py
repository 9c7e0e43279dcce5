"""Payment Repository Interface

Defines the contract for payment persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from aeroclub_billing.domain.payment import Payment, PaymentMethod


class PaymentRepository(ABC):
    """
    Repository interface for Payment persistence

    Payments are append-only. Receipt numbers and attempt keys are backed
    by unique constraints.
    """

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """
        Create a new payment

        Args:
            payment: Payment entity to persist

        Returns:
            Created Payment with generated ID

        Raises:
            IntegrityError: If receipt_number or (attempt_key, method) already exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        pass

    @abstractmethod
    async def get_by_invoice_id(self, invoice_id: int) -> List[Payment]:
        """
        Retrieve every payment recorded against an invoice, oldest first

        Always reads from the database so that payments committed by other
        sessions are visible.

        Args:
            invoice_id: Invoice ID

        Returns:
            List of payments (including reversals)
        """
        pass

    @abstractmethod
    async def get_by_attempt_key(self, attempt_key: str) -> List[Payment]:
        """
        Retrieve payments created by one reconciliation attempt

        Args:
            attempt_key: Idempotency key of the attempt

        Returns:
            List of payments (empty if the attempt never committed)
        """
        pass

    @abstractmethod
    async def get_reversal_of(self, payment_id: int) -> Optional[Payment]:
        """
        Retrieve the compensating record for a payment, if any

        Args:
            payment_id: ID of the original payment

        Returns:
            Reversal Payment if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_method(self, method: PaymentMethod, limit: int = 500, offset: int = 0) -> List[Payment]:
        """
        Retrieve payments of one method in ID order

        Args:
            method: Payment method
            limit: Maximum number of payments to return
            offset: Offset for pagination

        Returns:
            List of payments
        """
        pass

    @abstractmethod
    async def generate_receipt_number(self) -> str:
        """
        Generate the next receipt number

        Format: RCPT-YYYY-NNNNNN (e.g., RCPT-2024-000001)

        Returns:
            Receipt number string
        """
        pass
