# app/schemas/subscription_schema.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.models.subscription_model import SubscriptionStatus
from .base_schema import CamelModel


class SubscriptionCreate(CamelModel):
    plan_id: str
    trial_days: Optional[int] = None
    auto_renew: bool = True


class SubscriptionUpdate(CamelModel):
    auto_renew: Optional[bool] = None
    plan_id: Optional[str] = None


class SubscriptionCancelRequest(CamelModel):
    reason: str


class Subscription(CamelModel):
    id: str
    user_id: str
    plan_id: str
    plan_name: str
    status: SubscriptionStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    price: Decimal
    currency: str
    billing_cycle: str
    trial_days: Optional[int] = 0
    auto_renew: Optional[bool] = True
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
