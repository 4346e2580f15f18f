# app/schemas/payment_schema.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from app.models.payment_model import PaymentStatus
from .base_schema import CamelModel


class PaymentRequest(CamelModel):
    subscription_id: str
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    payment_method_token: str

    @field_validator("subscription_id", "payment_method_token")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value


class PaymentResponse(CamelModel):
    payment_id: str
    user_id: str
    subscription_id: str
    amount: Decimal
    status: PaymentStatus
    transaction_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
