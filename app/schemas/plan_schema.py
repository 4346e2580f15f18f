# app/schemas/plan_schema.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .base_schema import CamelModel


class PlanBase(CamelModel):
    code: str
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: Optional[str] = None
    billing_cycle: str
    trial_days: int = 0
    is_active: Optional[bool] = None
    max_users: Optional[int] = 1
    max_projects: Optional[int] = 10
    storage_limit: Optional[int] = None
    api_rate_limit: Optional[int] = 1000
    sort_order: Optional[int] = 0


class PlanCreate(PlanBase):
    pass


class PlanUpdate(CamelModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    billing_cycle: Optional[str] = None
    trial_days: Optional[int] = None
    is_active: Optional[bool] = None
    max_users: Optional[int] = None
    max_projects: Optional[int] = None
    storage_limit: Optional[int] = None
    api_rate_limit: Optional[int] = None
    sort_order: Optional[int] = None


class Plan(PlanBase):
    id: str
    currency: str
    is_active: bool
    created_at: Optional[datetime] = None
