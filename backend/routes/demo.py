"""
Demo API Routes

Countdown for the unauthenticated demo. One process-wide timer backs the
routes; state is derived from its clock on every read.
"""
from fastapi import APIRouter
from typing import Optional
from pydantic import BaseModel, Field
import logging

from models import DemoTimerResponse
from services.demo_timer import DemoTimer, format_duration

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/demo", tags=["demo"])

demo_timer = DemoTimer()


class StartTimerRequest(BaseModel):
    duration_ms: Optional[int] = Field(None, gt=0)


class ExtendTimerRequest(BaseModel):
    delta_ms: int


def _timer_response() -> DemoTimerResponse:
    remaining = demo_timer.time_remaining
    return DemoTimerResponse(
        status=demo_timer.status,
        time_remaining=remaining,
        percent_remaining=demo_timer.percent_remaining,
        formatted=format_duration(remaining),
    )


@router.get("/timer", response_model=DemoTimerResponse)
def get_timer():
    return _timer_response()


@router.post("/timer/start", response_model=DemoTimerResponse)
def start_timer(body: Optional[StartTimerRequest] = None):
    """Start the countdown. No-op while it is already running."""
    demo_timer.start(body.duration_ms if body else None)
    return _timer_response()


@router.post("/timer/stop", response_model=DemoTimerResponse)
def stop_timer():
    demo_timer.stop()
    return _timer_response()


@router.post("/timer/expire", response_model=DemoTimerResponse)
def expire_timer():
    demo_timer.expire_now()
    return _timer_response()


@router.post("/timer/extend", response_model=DemoTimerResponse)
def extend_timer(body: ExtendTimerRequest):
    """Add time; an expired timer resumes running. Non-positive deltas are ignored."""
    demo_timer.extend(body.delta_ms)
    return _timer_response()


@router.post("/timer/reset", response_model=DemoTimerResponse)
def reset_timer():
    demo_timer.reset()
    logger.info("Demo timer reset via API")
    return _timer_response()
