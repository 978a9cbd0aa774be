from fastapi import APIRouter, Depends

from src.api.runners.models import CounterResetResult
from src.api.runners.services.counter_service import RunnerCounterService
from src.core.responses import success_response
from src.dependencies.services import get_counter_service

maintenance_router = APIRouter(prefix="/jobs", tags=["Scheduled Jobs"])


@maintenance_router.post(
    "/reset-daily",
    summary="Reset every runner's daily completed orders",
    response_model=CounterResetResult,
)
async def reset_daily_completed_orders(
    counters: RunnerCounterService = Depends(get_counter_service),
):
    """Cloud Scheduler target, daily at 00:00 Asia/Kolkata."""
    result = await counters.reset_daily_completed()
    return success_response(result.model_dump(mode="json"), message="Daily counters reset")


@maintenance_router.post(
    "/reset-monthly",
    summary="Reset every runner's monthly completed orders",
    response_model=CounterResetResult,
)
async def reset_monthly_completed_orders(
    counters: RunnerCounterService = Depends(get_counter_service),
):
    """Cloud Scheduler target, 00:00 Asia/Kolkata on the 1st of each month."""
    result = await counters.reset_monthly_completed()
    return success_response(result.model_dump(mode="json"), message="Monthly counters reset")
