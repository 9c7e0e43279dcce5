"""SQLAlchemy Payment Repository Implementation

Implements payment persistence using SQLAlchemy async session.
"""

from typing import Optional, List
from datetime import datetime
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.domain.payment import Payment, PaymentMethod


class SqlAlchemyPaymentRepository(PaymentRepository):
    """
    SQLAlchemy implementation of PaymentRepository

    Payments are append-only: there are no update or delete methods.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payment: Payment) -> Payment:
        """
        Create a new payment

        Args:
            payment: Payment entity to persist

        Returns:
            Created Payment with generated ID
        """
        self.session.add(payment)
        await self.session.flush()
        await self.session.refresh(payment)
        return payment

    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        statement = select(Payment).where(Payment.id == payment_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_invoice_id(self, invoice_id: int) -> List[Payment]:
        """
        Retrieve all payments on an invoice, oldest first

        Args:
            invoice_id: Invoice ID

        Returns:
            List of payments
        """
        statement = (
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_by_attempt_key(self, attempt_key: str) -> List[Payment]:
        statement = (
            select(Payment)
            .where(Payment.attempt_key == attempt_key)
            .order_by(Payment.id)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_reversal_of(self, payment_id: int) -> Optional[Payment]:
        statement = select(Payment).where(Payment.reverses_payment_id == payment_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_method(self, method: PaymentMethod, limit: int = 500, offset: int = 0) -> List[Payment]:
        statement = (
            select(Payment)
            .where(Payment.payment_method == method)
            .order_by(Payment.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def generate_receipt_number(self) -> str:
        """
        Generate the next receipt number

        Format: RCPT-YYYY-NNNNNN (e.g., RCPT-2024-000001)

        Returns:
            Receipt number string
        """
        year = datetime.utcnow().year
        prefix = f"RCPT-{year}-"

        statement = (
            select(func.max(Payment.receipt_number))
            .where(Payment.receipt_number.like(f"{prefix}%"))
        )
        result = await self.session.execute(statement)
        max_number = result.scalar_one_or_none()

        if max_number:
            sequence = int(max_number.split("-")[-1]) + 1
        else:
            sequence = 1

        return f"{prefix}{sequence:06d}"
