"""SQLAlchemy Invoice Repository Implementation

Implements invoice persistence using SQLAlchemy async session.
"""

from typing import Optional, List
from datetime import date, datetime
from sqlalchemy import update
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.domain.invoice import Invoice, InvoiceStatus


class SqlAlchemyInvoiceRepository(InvoiceRepository):
    """
    SQLAlchemy implementation of InvoiceRepository

    Reads always repopulate from the database so a status or version
    committed by another session is never masked by the identity map.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, invoice: Invoice) -> Invoice:
        """
        Create a new invoice

        Args:
            invoice: Invoice entity to persist

        Returns:
            Created Invoice with generated ID
        """
        self.session.add(invoice)
        await self.session.flush()
        await self.session.refresh(invoice)
        return invoice

    async def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        """
        Retrieve invoice by ID

        Args:
            invoice_id: Invoice ID

        Returns:
            Invoice if found, None otherwise
        """
        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_past_due(self, as_of: date) -> List[Invoice]:
        """
        Retrieve pending invoices due before as_of

        Args:
            as_of: Reference date

        Returns:
            List of invoices, oldest due first
        """
        statement = (
            select(Invoice)
            .where(Invoice.status == InvoiceStatus.PENDING)
            .where(Invoice.due_date < as_of)
            .order_by(Invoice.due_date, Invoice.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_all(self, limit: int = 500, offset: int = 0) -> List[Invoice]:
        statement = (
            select(Invoice)
            .order_by(Invoice.id)
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def update_status(
        self,
        invoice_id: int,
        expected_version: int,
        status: InvoiceStatus,
        paid_date: Optional[datetime],
    ) -> bool:
        """
        Update status and paid_date if the invoice is still at expected_version

        Args:
            invoice_id: Invoice ID
            expected_version: Version observed when the invoice was read
            status: New status
            paid_date: New paid_date

        Returns:
            True if updated, False if the invoice changed concurrently
        """
        statement = (
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .where(Invoice.version == expected_version)
            .values(
                status=status,
                paid_date=paid_date,
                version=Invoice.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        if result.rowcount != 1:
            return False

        await self.session.get(Invoice, invoice_id, populate_existing=True)
        return True

    async def generate_invoice_number(self) -> str:
        """
        Generate a unique invoice number

        Format: INV-YYYY-NNNNNN (e.g., INV-2024-000001)

        Returns:
            Unique invoice number string
        """
        year = datetime.utcnow().year
        prefix = f"INV-{year}-"

        # Highest number issued this year
        statement = (
            select(func.max(Invoice.invoice_number))
            .where(Invoice.invoice_number.like(f"{prefix}%"))
        )
        result = await self.session.execute(statement)
        max_number = result.scalar_one_or_none()

        if max_number:
            sequence = int(max_number.split("-")[-1]) + 1
        else:
            sequence = 1

        return f"{prefix}{sequence:06d}"
