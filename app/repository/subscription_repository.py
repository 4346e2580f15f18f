from datetime import datetime
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.subscription_model import Subscription, SubscriptionStatus
from app.repository.base_repository import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    def __init__(self):
        super().__init__(Subscription)

    async def list_by_user(self, db: AsyncSession, user_id: str) -> List[Subscription]:
        result = await db.execute(
            select(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.start_date.desc())
        )
        return result.scalars().all()

    async def get_for_user(self, db: AsyncSession, subscription_id: str, user_id: str) -> Optional[Subscription]:
        result = await db.execute(
            select(Subscription).filter(
                Subscription.id == subscription_id,
                Subscription.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_user_and_status(
        self, db: AsyncSession, user_id: str, status: SubscriptionStatus
    ) -> Optional[Subscription]:
        result = await db.execute(
            select(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.status == status)
            .order_by(Subscription.start_date.desc())
        )
        return result.scalars().first()

    async def exists_for_plan(
        self, db: AsyncSession, user_id: str, plan_id: str, status: SubscriptionStatus
    ) -> bool:
        result = await db.execute(
            select(func.count(Subscription.id)).filter(
                Subscription.user_id == user_id,
                Subscription.plan_id == plan_id,
                Subscription.status == status,
            )
        )
        return result.scalar_one() > 0

    async def list_due_for_renewal_ids(self, db: AsyncSession, now: datetime) -> List[str]:
        result = await db.execute(
            select(Subscription.id).filter(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.next_billing_date < now,
            )
        )
        return list(result.scalars().all())

    async def list_trials_ending_ids(self, db: AsyncSession, now: datetime) -> List[str]:
        result = await db.execute(
            select(Subscription.id).filter(
                Subscription.status == SubscriptionStatus.TRIAL,
                Subscription.trial_end_date < now,
            )
        )
        return list(result.scalars().all())


subscription_repository = SubscriptionRepository()
