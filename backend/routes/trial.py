"""
Trial API Routes

Status, access and countdown data for the trial banner and feature guards,
plus the record view and end/reset controls used by the debug console.

Handlers are plain `def`: the trial service does blocking store I/O, so
FastAPI runs them in its threadpool.
"""
from fastapi import APIRouter, Request
from typing import Any, Dict, Optional
from pydantic import BaseModel
import logging

from models import AccessResponse, TrialRecordResponse, TrialStatusResponse
from middleware.trial_gating import require_trial_access
from services.trial_service import trial_service
from services.analytics_service import analytics_service
from utils.countdown import countdown_display

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/trial", tags=["trial"])


class FeatureUsageRequest(BaseModel):
    data: Optional[Dict[str, Any]] = None


def _status_response(status) -> TrialStatusResponse:
    if status is None:
        return TrialStatusResponse(trial=None, display=None)
    display = countdown_display(status) if status.is_active else None
    return TrialStatusResponse(trial=status, display=display)


@router.get("/status", response_model=TrialStatusResponse)
def get_status():
    """Current trial status; trial is null when no trial has been started."""
    return _status_response(trial_service.get_trial_status())


@router.post("/ensure", response_model=TrialStatusResponse)
def ensure_trial():
    """Start a trial if none exists and return its status."""
    return _status_response(trial_service.get_or_create_trial())


@router.get("/access", response_model=AccessResponse)
def get_access():
    return AccessResponse(has_access=trial_service.has_gated_access())


@router.get("/cached", response_model=TrialStatusResponse)
def get_cached_status():
    """Last computed status from the display cache."""
    return _status_response(trial_service.get_cached_status())


@router.get("/record", response_model=TrialRecordResponse)
def get_record():
    """Canonical trial record (id, window bounds, active flag) for admin display."""
    return TrialRecordResponse(record=trial_service.get_trial_record())


@router.post("/end")
def end_trial():
    logger.info("Manual trial end requested via API")
    trial_service.end_trial()
    return {"success": True}


@router.post("/reset")
def reset_trial():
    logger.info("Trial reset requested via API")
    trial_service.reset_trial()
    return {"success": True}


@router.post("/features/{feature}/use")
@require_trial_access
def use_feature(request: Request, feature: str, body: Optional[FeatureUsageRequest] = None):
    """Record use of a gated feature. Requires an active trial."""
    event = analytics_service.track_feature_usage(feature, body.data if body else None)
    return {"success": True, "event": event.model_dump(mode="json")}
