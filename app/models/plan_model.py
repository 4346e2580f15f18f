# app/models/plan_model.py
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, Numeric, Index, DateTime, func
from .base import Base

class SubscriptionPlan(Base):
    __tablename__ = 'subscription_plans'
    __table_args__ = (
        Index("ix_subscription_plans_is_active", "is_active"),
        Index("ix_subscription_plans_sort_order", "sort_order"),
    )
    id = Column(String(36), primary_key=True, index=True)
    # Always stored upper-case
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    billing_cycle = Column(String, nullable=False)
    trial_days = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    # Plan limits
    max_users = Column(Integer, default=1)
    max_projects = Column(Integer, default=10)
    storage_limit = Column(BigInteger, nullable=True)
    api_rate_limit = Column(Integer, default=1000)

    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
