from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.modules.payment.service import build_payment_response, payment_service
from app.schemas.payment_schema import PaymentRequest, PaymentResponse
from app.schemas.token_schema import TokenData

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/process", response_model=PaymentResponse)
async def process_payment(
    request: PaymentRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await payment_service.process_payment(db, current_user.user_id, request)
    return result.response


# Declared before /{payment_id} so "user" is not taken as an id
@router.get("/user", response_model=List[PaymentResponse])
async def get_user_payments(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payments = await payment_service.list_user_payments(db, current_user.user_id)
    return [build_payment_response(payment) for payment in payments]


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payment = await payment_service.get_payment(db, current_user.user_id, payment_id)
    return build_payment_response(payment)


@router.post("/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel_payment(
    payment_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await payment_service.cancel_payment(db, current_user.user_id, payment_id)
    return result.response
