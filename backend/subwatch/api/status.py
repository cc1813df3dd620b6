"""
Status API routes.
"""
from fastapi import APIRouter, Depends, Query, Request
from loguru import logger

from subwatch.api.subscriptions import get_manager
from subwatch.services.subscription_manager import SubscriptionManager
from subwatch.utils.errors import ErrorCode, raise_error
from subwatch.utils.formatting import format_bytes

router = APIRouter(prefix="/api/status", tags=["status"])


@router.get("/current")
async def get_current_status(request: Request, manager: SubscriptionManager = Depends(get_manager)):
    """Get collection totals and scheduler state."""
    summary = manager.store.summary()
    persistence = getattr(request.app.state, "persistence_service", None)
    logger.debug(f"status/current: {summary}")

    remaining = manager.remaining_quota
    return {
        "status": "running" if manager.running else "stopped",
        "subscriptions": summary,
        "remaining_quota": remaining,
        "remaining_quota_display": format_bytes(remaining),
        "global_update": {
            "minutes": manager.global_scheduler.interval_minutes,
            "active": manager.global_scheduler.active,
        },
        "scheduled_subscriptions": manager.item_scheduler.tracked_ids(),
        "persistence": {
            "dirty": persistence.dirty if persistence else None,
            "last_saved_count": persistence.last_saved_count if persistence else None,
        },
    }


@router.get("/notifications")
async def get_notifications(
    request: Request,
    limit: int = Query(20, ge=1, le=200, description="Maximum number of entries"),
):
    """Most recent notifications, newest first."""
    notification_service = getattr(request.app.state, "notification_service", None)
    if notification_service is None:
        raise_error(ErrorCode.SERVICE_UNAVAILABLE, "Notification service is not running", 503)
    return {
        "notifications": [
            entry.model_dump(mode="json") for entry in notification_service.recent(limit)
        ]
    }
