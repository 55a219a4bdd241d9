from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from enum import Enum

# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class TrialEventName(str, Enum):
    TRIAL_START = "trial_start"
    TRIAL_24H_LEFT = "trial_24h_left"
    TRIAL_EXPIRED = "trial_expired"
    TRIAL_ENDED_MANUALLY = "trial_ended_manually"

class Milestone(str, Enum):
    HOURS_24_LEFT = "24h_left"
    EXPIRED = "expired"

class EventCategory(str, Enum):
    TRIAL = "trial"
    USAGE = "usage"
    CONVERSION = "conversion"

class LookupState(str, Enum):
    ABSENT = "ABSENT"
    MALFORMED = "MALFORMED"
    PRESENT = "PRESENT"

class Urgency(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    CRITICAL = "critical"

class DemoTimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"

# ============================================================================
# TRIAL MODELS
# ============================================================================

class TrialRecord(BaseModel):
    """Canonical persisted trial. Bounds are set once at creation."""
    model_config = ConfigDict(extra="ignore")

    id: str
    trial_start: datetime
    trial_end: datetime
    has_active_trial: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.trial_start.tzinfo is None:
            self.trial_start = self.trial_start.replace(tzinfo=timezone.utc)
        if self.trial_end.tzinfo is None:
            self.trial_end = self.trial_end.replace(tzinfo=timezone.utc)
        if self.trial_end <= self.trial_start:
            raise ValueError("trial_end must be after trial_start")
        return self

class TrialStatus(BaseModel):
    """Status derived from a TrialRecord at a given instant."""
    model_config = ConfigDict(extra="ignore")

    trial_start: datetime
    trial_end: datetime
    is_expired: bool
    is_active: bool
    days_remaining: int = Field(ge=0)
    hours_remaining: int = Field(ge=0)

class RecordLookup(BaseModel):
    """Outcome of reading the persisted trial record."""
    state: LookupState
    record: Optional[TrialRecord] = None
    error: Optional[str] = None

# ============================================================================
# ANALYTICS MODELS
# ============================================================================

class AnalyticsEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: Optional[str] = None

# ============================================================================
# API RESPONSE MODELS
# ============================================================================

class CountdownDisplay(BaseModel):
    time_left: str
    headline: str
    urgency: Urgency

class TrialStatusResponse(BaseModel):
    trial: Optional[TrialStatus] = None
    display: Optional[CountdownDisplay] = None

class TrialRecordResponse(BaseModel):
    record: Optional[TrialRecord] = None

class AccessResponse(BaseModel):
    has_access: bool

class EventListResponse(BaseModel):
    events: List[AnalyticsEvent]
    total: int

class DemoTimerResponse(BaseModel):
    status: DemoTimerState
    time_remaining: int
    percent_remaining: float
    formatted: str
