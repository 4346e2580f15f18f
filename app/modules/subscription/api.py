from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.modules.admin.plan_service import plan_service
from app.modules.subscription.service import subscription_service
from app.schemas import plan_schema, subscription_schema
from app.schemas.token_schema import TokenData

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])
plans_router = APIRouter(prefix="/plans", tags=["Plans"])


@router.post("/subscribe", response_model=subscription_schema.Subscription)
async def subscribe(
    request: subscription_schema.SubscriptionCreate,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.create_subscription(db, current_user.user_id, request)


@router.get("", response_model=List[subscription_schema.Subscription])
async def get_user_subscriptions(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.list_user_subscriptions(db, current_user.user_id)


@router.get("/active", response_model=subscription_schema.Subscription)
async def get_active_subscription(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.get_active_subscription(db, current_user.user_id)


@router.get("/{subscription_id}", response_model=subscription_schema.Subscription)
async def get_subscription(
    subscription_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.get_subscription(db, subscription_id, current_user.user_id)


@router.put("/{subscription_id}", response_model=subscription_schema.Subscription)
async def update_subscription(
    subscription_id: str,
    updates: subscription_schema.SubscriptionUpdate,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.update_subscription(db, subscription_id, current_user.user_id, updates)


@router.post("/{subscription_id}/cancel", response_model=subscription_schema.Subscription)
async def cancel_subscription(
    subscription_id: str,
    request: subscription_schema.SubscriptionCancelRequest,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.cancel_subscription(
        db, subscription_id, current_user.user_id, request.reason
    )


@router.post("/{subscription_id}/pause", response_model=subscription_schema.Subscription)
async def pause_subscription(
    subscription_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.pause_subscription(db, subscription_id, current_user.user_id)


@router.post("/{subscription_id}/resume", response_model=subscription_schema.Subscription)
async def resume_subscription(
    subscription_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.resume_subscription(db, subscription_id, current_user.user_id)


# --- Public plan catalog ---

@plans_router.get("", response_model=List[plan_schema.Plan])
async def get_available_plans(db: AsyncSession = Depends(get_db)):
    return await plan_service.list_active_plans(db)


@plans_router.get("/{code}", response_model=plan_schema.Plan)
async def get_plan_by_code(code: str, db: AsyncSession = Depends(get_db)):
    return await plan_service.get_plan_by_code(db, code)
