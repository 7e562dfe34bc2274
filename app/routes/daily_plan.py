from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request

from app.db.database import get_db
from app.models.plan import PlanItemProgress, TodaysPlan
from app.services.plan_service import PlanService

router = APIRouter(prefix="/api/plan", tags=["daily-plan"])


def _plan_service(request: Request) -> PlanService:
    return request.app.state.plan_service


@router.get("/today", response_model=TodaysPlan)
async def get_todays_plan(
    service: PlanService = Depends(_plan_service),
    db=Depends(get_db),
):
    """Today's plan, generated on first request of the (UTC) day."""
    return await service.get_or_generate_todays_plan(db)


@router.delete("/today")
async def clear_todays_plan(
    service: PlanService = Depends(_plan_service),
    db=Depends(get_db),
):
    """Throw today's plan away; the next GET generates a new one."""
    deleted = await service.clear_todays_plan(db)
    return {"status": "cleared", "deleted": deleted}


@router.get("/{plan_date}", response_model=TodaysPlan)
async def get_plan_for_date(
    plan_date: date,
    service: PlanService = Depends(_plan_service),
    db=Depends(get_db),
):
    plan = await service.get_cached_plan(db, plan_date)
    if plan is None:
        raise HTTPException(status_code=404, detail=f"No plan for {plan_date.isoformat()}")
    return plan


@router.post("/items/{plan_item_id}/complete")
async def complete_plan_item(
    plan_item_id: str,
    body: PlanItemProgress,
    service: PlanService = Depends(_plan_service),
    db=Depends(get_db),
):
    # Unknown ids are logged and ignored; the client may hold a stale plan
    await service.mark_item_complete(db, plan_item_id, body.minutes_spent)
    return {"status": "ok"}


@router.put("/items/{plan_item_id}/progress")
async def update_plan_item_progress(
    plan_item_id: str,
    body: PlanItemProgress,
    service: PlanService = Depends(_plan_service),
    db=Depends(get_db),
):
    await service.update_item_progress(db, plan_item_id, body.minutes_spent)
    return {"status": "ok"}
