"""Credit API Routes

FastAPI routes for member account credit.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from aeroclub_billing.app.use_cases.billing.dtos import CreditBalanceResponseDTO
from aeroclub_billing.app.use_cases.billing.get_credit_balance import GetCreditBalance
from aeroclub_billing.adapter.repositories.member_account_repository import SqlAlchemyMemberAccountRepository
from aeroclub_billing.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from aeroclub_billing.depends import get_session
from aeroclub_billing.api.error import client_error

router = APIRouter(prefix="/billing/credits", tags=["Credits"])


@router.get(
    "/{user_id}",
    response_model=CreditBalanceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Member account not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "ACCOUNT_NOT_FOUND",
                            "message": "No credit account for member_42"
                        }
                    }
                }
            }
        }
    }
)
async def get_credit_balance(
    user_id: str,
    history_limit: int = Query(default=10, ge=0, le=100),
    session: AsyncSession = Depends(get_session)
):
    """
    Get a member's account credit and their most recent credit movements.

    **Returns:**
    - 200: Balance retrieved
    - 404: Member has no credit account
    """
    use_case = GetCreditBalance(
        SqlAlchemyMemberAccountRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
    )
    result = await use_case.execute(user_id, history_limit=history_limit)

    if result.is_err():
        raise client_error(result.error)

    return result.value
