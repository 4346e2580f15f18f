# app/models/subscription_model.py
import enum
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, Index, Enum as SQLAlchemyEnum, func

from .base import Base


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    PENDING = "PENDING"
    PAST_DUE = "PAST_DUE"


class BillingCycle(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class Subscription(Base):
    __tablename__ = 'subscriptions'
    __table_args__ = (
        Index("ix_subscriptions_status_next_billing", "status", "next_billing_date"),
        Index("ix_subscriptions_status_trial_end", "status", "trial_end_date"),
    )
    id = Column(String(36), primary_key=True, index=True)
    # Never reassigned once set
    user_id = Column(String, nullable=False, index=True)
    plan_id = Column(String(36), nullable=False)
    # Snapshot of the plan at subscribe time
    plan_name = Column(String, nullable=False)

    status = Column(SQLAlchemyEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime)
    next_billing_date = Column(DateTime)
    trial_end_date = Column(DateTime)

    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    billing_cycle = Column(String, nullable=False)
    trial_days = Column(Integer, default=0)
    auto_renew = Column(Boolean, default=True)
    cancellation_reason = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_entitled(self) -> bool:
        return self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL)
