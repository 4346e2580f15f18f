from typing import TypeVar, Type, Optional, Generic
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.core.exceptions import PersistenceError
from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)

class BaseRepository(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: str) -> Optional[ModelType]:
        result = await db.execute(select(self.model).filter(self.model.id == id))
        return result.scalar_one_or_none()

    async def save(self, db: AsyncSession, db_obj: ModelType) -> ModelType:
        """Persist one entity as its own durable write."""
        try:
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(
                f"Failed to save {self.model.__name__} {getattr(db_obj, 'id', None)}: {e}"
            ) from e
        return db_obj

    async def delete(self, db: AsyncSession, id: str) -> Optional[ModelType]:
        db_obj = await self.get(db, id)
        if db_obj:
            await db.delete(db_obj)
            await db.commit()
        return db_obj
