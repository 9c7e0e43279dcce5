"""Payment API Routes

FastAPI routes for correcting recorded payments.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from aeroclub_billing.api.schemas.billing_request import ReverseRequestSchema
from aeroclub_billing.app.use_cases.billing.dtos import ReversePaymentCommandDTO, ReversalResultDTO
from aeroclub_billing.app.use_cases.billing.reverse_payment import ReversePayment
from aeroclub_billing.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from aeroclub_billing.adapter.repositories.payment_repository import SqlAlchemyPaymentRepository
from aeroclub_billing.adapter.repositories.member_account_repository import SqlAlchemyMemberAccountRepository
from aeroclub_billing.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from aeroclub_billing.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from aeroclub_billing.depends import get_session
from aeroclub_billing.api.error import client_error

router = APIRouter(prefix="/billing/payments", tags=["Payments"])


@router.post(
    "/{payment_id}/reverse",
    response_model=ReversalResultDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {"description": "Payment not found"},
        409: {"description": "Payment already reversed or invoice changed concurrently"},
    }
)
async def reverse_payment(
    payment_id: int,
    request: ReverseRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Reverse a payment with a compensating negative record.

    Reversing a credit payment restores the credit to the member's account.
    The invoice status is recomputed in the same commit.

    **Returns:**
    - 200: Reversal recorded
    - 400: Payment cannot be reversed
    - 404: Payment not found
    - 409: Already reversed or concurrent change
    """
    uow = SqlAlchemyUnitOfWork(session)
    use_case = ReversePayment(
        uow,
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyPaymentRepository(session),
        SqlAlchemyMemberAccountRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
    )

    command = ReversePaymentCommandDTO(
        payment_id=payment_id,
        recorded_by=request.recorded_by,
        notes=request.notes,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise client_error(result.error)

    return result.value
