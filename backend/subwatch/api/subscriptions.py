"""
Subscription API routes.
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field, ValidationError
from loguru import logger

from subwatch.services.subscription_manager import SubscriptionManager
from subwatch.utils.errors import ErrorCode, raise_error

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


class SubscriptionBody(BaseModel):
    """Subscription as sent by the presentation layer; unknown keys pass through."""
    id: Optional[str] = None
    name: Optional[str] = None
    url: str = ""
    enabled: Optional[bool] = None
    exclude: Optional[str] = None
    update_interval: Optional[int] = Field(None, alias="updateInterval")

    class Config:
        populate_by_name = True
        extra = "allow"

    def to_raw(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SubscriptionListBody(BaseModel):
    subscriptions: List[SubscriptionBody] = Field(default_factory=list)


class PageRequest(BaseModel):
    page: int


class IntervalRequest(BaseModel):
    minutes: Optional[int] = Field(None, ge=0, description="Minutes between refreshes, 0 or null to disable")


def get_manager(request: Request) -> SubscriptionManager:
    """Dependency returning the running subscription manager."""
    manager = getattr(request.app.state, "subscription_manager", None)
    if manager is None:
        raise_error(ErrorCode.SERVICE_UNAVAILABLE, "Subscription manager is not running", 503)
    return manager


def _mark_saved_state_stale(request: Request):
    persistence = getattr(request.app.state, "persistence_service", None)
    if persistence is not None:
        persistence.mark_dirty()


def _not_found(subscription_id: str):
    raise_error(
        ErrorCode.SUBSCRIPTION_NOT_FOUND,
        f"Subscription {subscription_id} not found",
        status.HTTP_404_NOT_FOUND,
        log=False,
    )


def _page_payload(manager: SubscriptionManager, page: Optional[int] = None) -> Dict[str, Any]:
    items = manager.store.paginated_slice(page)
    return {
        "subscriptions": [s.to_wire() for s in items],
        "current_page": manager.current_page if page is None else page,
        "total_pages": manager.total_pages,
        "total": len(manager.store),
        "enabled_count": manager.enabled_count,
        "remaining_quota": manager.remaining_quota,
    }


@router.get("")
async def list_subscriptions(
    page: Optional[int] = Query(None, ge=1, description="Page to read (default: current page)"),
    manager: SubscriptionManager = Depends(get_manager),
):
    """Get one page of subscriptions with collection totals."""
    return _page_payload(manager, page)


@router.get("/all")
async def list_all_subscriptions(manager: SubscriptionManager = Depends(get_manager)):
    """Get the full collection in display order."""
    return {"subscriptions": [s.to_wire() for s in manager.subscriptions]}


@router.put("")
async def replace_subscriptions(
    request: Request,
    body: SubscriptionListBody,
    manager: SubscriptionManager = Depends(get_manager),
):
    """Replace the whole collection (no refresh is triggered)."""
    manager.initialize([s.to_raw() for s in body.subscriptions])
    _mark_saved_state_stale(request)
    return _page_payload(manager)


@router.post("/page")
async def change_page(body: PageRequest, manager: SubscriptionManager = Depends(get_manager)):
    """Move the current page; out-of-range pages are ignored."""
    changed = manager.change_page(body.page)
    return {"changed": changed, "current_page": manager.current_page, "total_pages": manager.total_pages}


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_subscription(body: SubscriptionBody, manager: SubscriptionManager = Depends(get_manager)):
    """Add one subscription at the front and start refreshing it."""
    try:
        subscription = manager.add(body.to_raw())
    except ValidationError as e:
        raise_error(ErrorCode.VALIDATION_ERROR, f"Invalid subscription: {e.error_count()} error(s)", 422)
    return subscription.to_wire()


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def add_subscriptions_bulk(body: SubscriptionListBody, manager: SubscriptionManager = Depends(get_manager)):
    """Import several subscriptions and refresh them with one batch call."""
    try:
        outcome = await manager.add_bulk([s.to_raw() for s in body.subscriptions])
    except ValidationError as e:
        raise_error(ErrorCode.VALIDATION_ERROR, f"Invalid subscription: {e.error_count()} error(s)", 422)
    logger.debug(f"Bulk import outcome: {outcome}")
    return {
        "added": len(body.subscriptions),
        "refreshed": outcome.total,
        "succeeded": outcome.succeeded,
        "degraded": outcome.degraded,
        "message": outcome.message,
    }


@router.put("/{subscription_id}")
async def update_subscription(
    subscription_id: str,
    body: SubscriptionBody,
    manager: SubscriptionManager = Depends(get_manager),
):
    """Replace a subscription; a changed URL triggers a refresh."""
    raw = body.to_raw()
    raw["id"] = subscription_id
    try:
        updated = manager.update(raw)
    except ValidationError as e:
        raise_error(ErrorCode.VALIDATION_ERROR, f"Invalid subscription: {e.error_count()} error(s)", 422)
    if updated is None:
        _not_found(subscription_id)
    return updated.to_wire()


@router.delete("/{subscription_id}")
async def delete_subscription(subscription_id: str, manager: SubscriptionManager = Depends(get_manager)):
    if not manager.delete(subscription_id):
        _not_found(subscription_id)
    return {"deleted": subscription_id, "current_page": manager.current_page}


@router.delete("")
async def delete_all_subscriptions(manager: SubscriptionManager = Depends(get_manager)):
    count = len(manager.store)
    manager.delete_all()
    return {"deleted": count}


@router.post("/{subscription_id}/refresh")
async def refresh_subscription(subscription_id: str, manager: SubscriptionManager = Depends(get_manager)):
    """Refresh one subscription now."""
    if manager.get(subscription_id) is None:
        _not_found(subscription_id)
    outcome = await manager.refresh(subscription_id)
    return {"outcome": outcome.value, "subscription": manager.get(subscription_id).to_wire()}


@router.put("/{subscription_id}/interval")
async def set_subscription_interval(
    subscription_id: str,
    body: IntervalRequest,
    manager: SubscriptionManager = Depends(get_manager),
):
    """Set or clear a subscription's own auto-update interval."""
    if not manager.set_subscription_interval(subscription_id, body.minutes):
        _not_found(subscription_id)
    return {
        "id": subscription_id,
        "update_interval": manager.get(subscription_id).update_interval,
        "scheduled": subscription_id in manager.item_scheduler.tracked_ids(),
    }
