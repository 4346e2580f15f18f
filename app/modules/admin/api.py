from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_admin, get_db
from app.modules.admin.plan_service import plan_service
from app.schemas import plan_schema

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/plans", response_model=List[plan_schema.Plan])
async def read_plans(db: AsyncSession = Depends(get_db)):
    return await plan_service.list_plans(db)


@router.post("/plans", response_model=plan_schema.Plan, status_code=status.HTTP_201_CREATED)
async def create_plan(plan: plan_schema.PlanCreate, db: AsyncSession = Depends(get_db)):
    return await plan_service.create_plan(db, plan)


@router.put("/plans/{plan_id}", response_model=plan_schema.Plan)
async def update_plan(plan_id: str, plan: plan_schema.PlanUpdate, db: AsyncSession = Depends(get_db)):
    return await plan_service.update_plan(db, plan_id, plan)


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(plan_id: str, db: AsyncSession = Depends(get_db)):
    await plan_service.delete_plan(db, plan_id)


@router.post("/plans/{plan_id}/toggle", response_model=plan_schema.Plan)
async def toggle_plan(plan_id: str, db: AsyncSession = Depends(get_db)):
    return await plan_service.toggle_plan_active(db, plan_id)
