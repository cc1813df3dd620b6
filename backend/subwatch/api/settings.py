"""
Settings API routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from loguru import logger

from subwatch.api.subscriptions import get_manager
from subwatch.services.subscription_manager import SubscriptionManager
from subwatch.utils.errors import ErrorCode, raise_error

router = APIRouter(prefix="/api/settings", tags=["settings"])


class UpdateIntervalRequest(BaseModel):
    minutes: Optional[int] = Field(None, ge=0, description="Global auto-update interval, 0 disables it")


def _interval_payload(manager: SubscriptionManager):
    scheduler = manager.global_scheduler
    return {"minutes": scheduler.interval_minutes, "active": scheduler.active}


@router.get("/update-interval")
async def get_update_interval(manager: SubscriptionManager = Depends(get_manager)):
    """Get the global auto-update interval."""
    return _interval_payload(manager)


@router.put("/update-interval")
async def set_update_interval(
    body: UpdateIntervalRequest,
    manager: SubscriptionManager = Depends(get_manager),
):
    """Change the global auto-update interval and re-arm its timer."""
    logger.info(f"Global update interval changed via API: {body.minutes}")
    manager.set_update_interval(body.minutes)
    return _interval_payload(manager)


@router.post("/update-interval/reload")
async def reload_update_interval(manager: SubscriptionManager = Depends(get_manager)):
    """Read the interval from the backend settings store again."""
    if not await manager.reload_update_interval():
        raise_error(ErrorCode.SERVICE_UNAVAILABLE, "Backend settings could not be read", 503)
    return _interval_payload(manager)
