from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.plan_model import SubscriptionPlan
from app.repository.base_repository import BaseRepository


class PlanRepository(BaseRepository[SubscriptionPlan]):
    def __init__(self):
        super().__init__(SubscriptionPlan)

    async def get_by_code(self, db: AsyncSession, code: str) -> Optional[SubscriptionPlan]:
        result = await db.execute(select(SubscriptionPlan).filter(SubscriptionPlan.code == code.upper()))
        return result.scalar_one_or_none()

    async def exists_by_code(self, db: AsyncSession, code: str) -> bool:
        result = await db.execute(
            select(func.count(SubscriptionPlan.id)).filter(SubscriptionPlan.code == code.upper())
        )
        return result.scalar_one() > 0

    async def list_all(self, db: AsyncSession) -> List[SubscriptionPlan]:
        result = await db.execute(select(SubscriptionPlan).order_by(SubscriptionPlan.sort_order.asc()))
        return result.scalars().all()

    async def list_active(self, db: AsyncSession) -> List[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.sort_order.asc())
        )
        result = await db.execute(stmt)
        return result.scalars().all()


plan_repository = PlanRepository()
