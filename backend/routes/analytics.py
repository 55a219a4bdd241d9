"""
Analytics API Routes

Read access to the local event log and the conversion tracking hooks used by
the upgrade flow.
"""
from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse
from typing import Optional
from pydantic import BaseModel
import logging

from models import EventListResponse
from services.analytics_service import analytics_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/analytics", tags=["analytics"])


class PaymentPageViewRequest(BaseModel):
    source: str = "unknown"


class PlanSelectedRequest(BaseModel):
    plan_id: str
    source: str = "unknown"


@router.get("/events", response_model=EventListResponse)
def list_events(
    category: Optional[str] = Query(None, description="Filter by category: trial, usage, conversion")
):
    if category:
        events = analytics_service.get_events_by_category(category)
    else:
        events = analytics_service.get_events()
    return EventListResponse(events=events, total=len(events))


@router.get("/events/trial", response_model=EventListResponse)
def list_trial_events():
    events = analytics_service.get_trial_events()
    return EventListResponse(events=events, total=len(events))


@router.get("/export", response_class=PlainTextResponse)
def export_events():
    return PlainTextResponse(analytics_service.export_events(), media_type="application/json")


@router.delete("/events")
def clear_events():
    analytics_service.clear_events()
    logger.info("Analytics events cleared")
    return {"success": True}


@router.post("/payment-page-view")
def payment_page_view(body: PaymentPageViewRequest):
    event = analytics_service.track_payment_page_view(body.source)
    return {"success": True, "event": event.model_dump(mode="json")}


@router.post("/plan-selected")
def plan_selected(body: PlanSelectedRequest):
    event = analytics_service.track_plan_selected(body.plan_id, body.source)
    return {"success": True, "event": event.model_dump(mode="json")}
