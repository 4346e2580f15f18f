import logging
import uuid
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.plan_model import SubscriptionPlan
from app.repository.plan_repository import PlanRepository, plan_repository
from app.schemas.plan_schema import PlanCreate, PlanUpdate

logger = logging.getLogger(__name__)


def _require_text(value, label: str):
    if value is None or not str(value).strip():
        raise ValidationError(f"Plan {label} is required")


def _require_positive_price(price):
    if price is None or price <= 0:
        raise ValidationError("Price must be greater than 0")


class PlanService:
    def __init__(self, repository: PlanRepository = plan_repository):
        self.repository = repository

    async def list_plans(self, db: AsyncSession) -> List[SubscriptionPlan]:
        return await self.repository.list_all(db)

    async def list_active_plans(self, db: AsyncSession) -> List[SubscriptionPlan]:
        return await self.repository.list_active(db)

    async def get_plan(self, db: AsyncSession, plan_id: str) -> SubscriptionPlan:
        plan = await self.repository.get(db, plan_id)
        if not plan:
            raise NotFoundError(f"Plan not found with ID: {plan_id}")
        return plan

    async def get_plan_by_code(self, db: AsyncSession, code: str) -> SubscriptionPlan:
        plan = await self.repository.get_by_code(db, code.strip())
        if not plan:
            raise NotFoundError("Plan not found", details={"code": code})
        return plan

    async def create_plan(self, db: AsyncSession, plan_data: PlanCreate) -> SubscriptionPlan:
        _require_text(plan_data.code, "code")
        _require_text(plan_data.name, "name")
        _require_text(plan_data.billing_cycle, "billing cycle")
        _require_positive_price(plan_data.price)
        if plan_data.trial_days is not None and plan_data.trial_days < 0:
            raise ValidationError("Trial days cannot be negative")

        code = plan_data.code.strip().upper()
        if await self.repository.exists_by_code(db, code):
            raise ConflictError(f"Plan code already exists: {code}")

        values = plan_data.model_dump()
        values.update(
            id=str(uuid.uuid4()),
            code=code,
            billing_cycle=plan_data.billing_cycle.strip().upper(),
            currency=plan_data.currency or settings.DEFAULT_CURRENCY,
            is_active=True if plan_data.is_active is None else plan_data.is_active,
        )
        plan = await self.repository.save(db, SubscriptionPlan(**values))
        logger.info(f"Created plan {plan.code} ({plan.id})")
        return plan

    async def update_plan(self, db: AsyncSession, plan_id: str, plan_data: PlanUpdate) -> SubscriptionPlan:
        plan = await self.get_plan(db, plan_id)
        update_data = plan_data.model_dump(exclude_unset=True)

        if "code" in update_data:
            _require_text(update_data["code"], "code")
            code = update_data["code"].strip().upper()
            if code != plan.code and await self.repository.exists_by_code(db, code):
                raise ConflictError(f"Plan code already exists: {code}")
            update_data["code"] = code

        if "price" in update_data:
            _require_positive_price(update_data["price"])

        if "billing_cycle" in update_data:
            _require_text(update_data["billing_cycle"], "billing cycle")
            update_data["billing_cycle"] = update_data["billing_cycle"].strip().upper()

        for key, value in update_data.items():
            if value is not None:
                setattr(plan, key, value)

        return await self.repository.save(db, plan)

    async def delete_plan(self, db: AsyncSession, plan_id: str) -> None:
        await self.get_plan(db, plan_id)
        await self.repository.delete(db, plan_id)
        logger.info(f"Deleted plan {plan_id}")

    async def toggle_plan_active(self, db: AsyncSession, plan_id: str) -> SubscriptionPlan:
        plan = await self.get_plan(db, plan_id)
        plan.is_active = not plan.is_active
        return await self.repository.save(db, plan)

plan_service = PlanService()
