import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.subscription_model import Subscription, SubscriptionStatus
from app.modules.admin.plan_service import PlanService, plan_service
from app.modules.subscription import state_machine
from app.repository.subscription_repository import SubscriptionRepository, subscription_repository
from app.schemas.subscription_schema import SubscriptionCreate, SubscriptionUpdate

logger = logging.getLogger(__name__)


class SubscriptionService:
    def __init__(
        self,
        repository: SubscriptionRepository = subscription_repository,
        plans: PlanService = plan_service,
    ):
        self.repository = repository
        self.plans = plans

    async def create_subscription(
        self, db: AsyncSession, user_id: str, request: SubscriptionCreate, now: Optional[datetime] = None
    ) -> Subscription:
        if not request.plan_id:
            raise ValidationError("Plan ID is required")

        if await self.repository.exists_for_plan(db, user_id, request.plan_id, SubscriptionStatus.ACTIVE):
            raise ConflictError("User already has an active subscription for given plan")

        plan = await self.plans.get_plan(db, request.plan_id)
        if not plan.is_active:
            raise ValidationError("Plan is not active")

        trial_days = (plan.trial_days or 0) if request.trial_days is None else request.trial_days
        if trial_days < 0:
            raise ValidationError("Trial days cannot be negative")

        now = now or datetime.utcnow()
        subscription = Subscription(
            id=str(uuid.uuid4()),
            user_id=user_id,
            plan_id=plan.id,
            plan_name=plan.name,
            status=SubscriptionStatus.ACTIVE,
            price=plan.price,
            currency=plan.currency,
            billing_cycle=plan.billing_cycle,
            trial_days=trial_days,
            auto_renew=request.auto_renew,
        )
        state_machine.start_period(subscription, now)

        if trial_days > 0:
            subscription.status = SubscriptionStatus.TRIAL
            subscription.trial_end_date = now + timedelta(days=trial_days)

        subscription = await self.repository.save(db, subscription)
        logger.info(f"Created subscription {subscription.id} for user {user_id}")
        return subscription

    async def list_user_subscriptions(self, db: AsyncSession, user_id: str) -> List[Subscription]:
        return await self.repository.list_by_user(db, user_id)

    async def get_subscription(self, db: AsyncSession, subscription_id: str, user_id: str) -> Subscription:
        subscription = await self.repository.get_for_user(db, subscription_id, user_id)
        if not subscription:
            raise NotFoundError("Subscription not found", details={"subscription_id": subscription_id})
        return subscription

    async def update_subscription(
        self,
        db: AsyncSession,
        subscription_id: str,
        user_id: str,
        updates: SubscriptionUpdate,
        now: Optional[datetime] = None,
    ) -> Subscription:
        subscription = await self.get_subscription(db, subscription_id, user_id)

        if updates.auto_renew is not None:
            subscription.auto_renew = updates.auto_renew

        if updates.plan_id is not None:
            new_plan = await self.plans.get_plan(db, updates.plan_id)
            subscription.plan_id = new_plan.id
            subscription.plan_name = new_plan.name
            subscription.price = new_plan.price
            subscription.currency = new_plan.currency
            subscription.billing_cycle = new_plan.billing_cycle
            # Plan changes restart the billing period from now
            now = now or datetime.utcnow()
            subscription.end_date = state_machine.compute_cycle_end(now, new_plan.billing_cycle)
            subscription.next_billing_date = subscription.end_date
            logger.info(f"User {user_id} moved subscription {subscription_id} to plan {new_plan.name}")

        return await self.repository.save(db, subscription)

    async def cancel_subscription(
        self, db: AsyncSession, subscription_id: str, user_id: str, reason: str, now: Optional[datetime] = None
    ) -> Subscription:
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")

        subscription = await self.get_subscription(db, subscription_id, user_id)
        state_machine.cancel(subscription, reason.strip(), now or datetime.utcnow())
        subscription = await self.repository.save(db, subscription)

        logger.info(f"Cancelled subscription {subscription_id} for user {user_id}")
        return subscription

    async def pause_subscription(self, db: AsyncSession, subscription_id: str, user_id: str) -> Subscription:
        subscription = await self.get_subscription(db, subscription_id, user_id)
        state_machine.pause(subscription)
        subscription = await self.repository.save(db, subscription)

        logger.info(f"Paused subscription {subscription_id} for user {user_id}")
        return subscription

    async def resume_subscription(self, db: AsyncSession, subscription_id: str, user_id: str) -> Subscription:
        subscription = await self.get_subscription(db, subscription_id, user_id)
        state_machine.resume(subscription)
        subscription = await self.repository.save(db, subscription)

        logger.info(f"Resumed subscription {subscription_id} for user {user_id}")
        return subscription

    async def get_active_subscription(self, db: AsyncSession, user_id: str) -> Subscription:
        subscription = await self.repository.get_by_user_and_status(db, user_id, SubscriptionStatus.ACTIVE)
        if not subscription:
            raise NotFoundError("No active subscription found")
        return subscription

subscription_service = SubscriptionService()
