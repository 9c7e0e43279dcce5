"""Invoice Repository Interface

Defines the contract for invoice persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from datetime import date, datetime
from aeroclub_billing.domain.invoice import Invoice, InvoiceStatus


class InvoiceRepository(ABC):
    """
    Repository interface for Invoice persistence

    Status changes go through update_status, which only applies when the
    invoice is still at the version the caller read (optimistic locking).
    """

    @abstractmethod
    async def create(self, invoice: Invoice) -> Invoice:
        """
        Create a new invoice

        Args:
            invoice: Invoice entity to persist

        Returns:
            Created Invoice with generated ID
        """
        pass

    @abstractmethod
    async def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        """
        Retrieve invoice by ID

        Args:
            invoice_id: Invoice ID

        Returns:
            Invoice if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_past_due(self, as_of: date) -> List[Invoice]:
        """
        Retrieve pending invoices whose due_date is before as_of

        Args:
            as_of: Reference date

        Returns:
            List of invoices
        """
        pass

    @abstractmethod
    async def get_all(self, limit: int = 500, offset: int = 0) -> List[Invoice]:
        """
        Retrieve invoices in ID order (used by the payment audit)

        Args:
            limit: Maximum number of invoices to return
            offset: Offset for pagination

        Returns:
            List of invoices
        """
        pass

    @abstractmethod
    async def update_status(
        self,
        invoice_id: int,
        expected_version: int,
        status: InvoiceStatus,
        paid_date: Optional[datetime],
    ) -> bool:
        """
        Set status/paid_date and bump version if still at expected_version

        Args:
            invoice_id: Invoice ID
            expected_version: Version observed when the invoice was read
            status: New status
            paid_date: New paid_date (None clears it)

        Returns:
            True if the row was updated, False if it changed concurrently
        """
        pass

    @abstractmethod
    async def generate_invoice_number(self) -> str:
        """
        Generate a unique invoice number

        Format: INV-YYYY-NNNNNN (e.g., INV-2024-000001)

        Returns:
            Unique invoice number string
        """
        pass
