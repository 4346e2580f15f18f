from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.payment_model import Payment
from app.repository.base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self):
        super().__init__(Payment)

    async def list_by_user(self, db: AsyncSession, user_id: str) -> List[Payment]:
        result = await db.execute(
            select(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc())
        )
        return result.scalars().all()


payment_repository = PaymentRepository()
