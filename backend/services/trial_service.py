"""Trial Service - fixed-length trial window and access gating.

The trial record is the single source of truth. Status is recomputed from the
record and the current time on every read; the stored status copy is a
display cache only.

Milestones (24h_left, expired) are one-shot: each fires at most once per
record and the emitted flags are cleared only by reset_trial().

Every public operation returns a value. Missing or unreadable state reads as
"no trial"; storage write failures are logged and the call carries on with
the in-memory result.
"""
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from models import (
    LookupState,
    Milestone,
    RecordLookup,
    TrialEventName,
    TrialRecord,
    TrialStatus,
)
from services.storage_adapter import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

TRIAL_DURATION_DAYS = 3

USER_STORAGE_KEY = "docsmart_user_data"
TRIAL_STORAGE_KEY = "docsmart_trial_data"
MILESTONES_STORAGE_KEY = "trial_milestones_emitted"

ONE_DAY = timedelta(days=1)
ONE_HOUR = timedelta(hours=1)

PendingEvent = Tuple[str, Dict[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ceil_units(remaining: timedelta, unit: timedelta) -> int:
    # timedelta // timedelta is exact integer floor division
    return -(-remaining // unit)


def generate_trial_id(now: datetime) -> str:
    return f"user_{uuid.uuid4().hex[:9]}_{int(now.timestamp() * 1000)}"


def compute_status(record: TrialRecord, now: datetime) -> TrialStatus:
    """Derive trial status from the record at instant `now`."""
    is_expired = now > record.trial_end
    remaining = max(timedelta(0), record.trial_end - now)
    return TrialStatus(
        trial_start=record.trial_start,
        trial_end=record.trial_end,
        is_expired=is_expired,
        is_active=not is_expired and record.has_active_trial,
        days_remaining=_ceil_units(remaining, ONE_DAY),
        hours_remaining=_ceil_units(remaining, ONE_HOUR),
    )


def reconcile_milestones(
    status: TrialStatus, emitted: Dict[str, bool]
) -> Tuple[List[PendingEvent], Dict[str, bool]]:
    """
    Work out which milestones `status` has newly crossed.

    Returns:
        (events_to_emit, updated_flags). `emitted` is not modified.
    """
    flags = dict(emitted)
    events: List[PendingEvent] = []

    if 0 < status.hours_remaining <= 24 and not flags.get(Milestone.HOURS_24_LEFT.value):
        events.append((TrialEventName.TRIAL_24H_LEFT.value, {
            "hours_remaining": status.hours_remaining,
            "trial_end": status.trial_end.isoformat(),
        }))
        flags[Milestone.HOURS_24_LEFT.value] = True

    if status.is_expired and not flags.get(Milestone.EXPIRED.value):
        events.append((TrialEventName.TRIAL_EXPIRED.value, {
            "trial_start": status.trial_start.isoformat(),
            "trial_end": status.trial_end.isoformat(),
        }))
        flags[Milestone.EXPIRED.value] = True

    return events, flags


class TrialService:
    """Owns the persisted trial record and the derived access decisions."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        analytics=None,
        clock: Optional[Callable[[], datetime]] = None,
        duration_days: int = TRIAL_DURATION_DAYS,
    ):
        if duration_days <= 0:
            raise ValueError("duration_days must be positive")
        self._store = store
        self._analytics = analytics
        self._clock = clock or _utcnow
        self.duration_days = duration_days

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            from database import database
            return database.get_store()
        return self._store

    @property
    def analytics(self):
        if self._analytics is None:
            from services.analytics_service import analytics_service
            return analytics_service
        return self._analytics

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def initialize_trial(self) -> TrialStatus:
        """Start a new trial window at the current time. Overwrites any existing record."""
        now = self._clock()
        record = TrialRecord(
            id=generate_trial_id(now),
            trial_start=now,
            trial_end=now + timedelta(days=self.duration_days),
            has_active_trial=True,
        )
        status = compute_status(record, now)

        self._persist(USER_STORAGE_KEY, record.model_dump_json())
        self._persist(TRIAL_STORAGE_KEY, status.model_dump_json())
        logger.info(f"Trial initialised: {record.id} ends {record.trial_end.isoformat()}")

        self._track(TrialEventName.TRIAL_START, {
            "trial_start": record.trial_start.isoformat(),
            "trial_end": record.trial_end.isoformat(),
            "duration_days": self.duration_days,
        })
        return status

    def get_trial_status(self) -> Optional[TrialStatus]:
        """
        Current status, or None when there is no usable record.
        Refreshes the display cache and emits newly crossed milestones.
        """
        record = self._load_record()
        if record is None:
            return None

        status = compute_status(record, self._clock())
        self._persist(TRIAL_STORAGE_KEY, status.model_dump_json())
        self._emit_milestones(status)
        return status

    def has_gated_access(self) -> bool:
        status = self.get_trial_status()
        if status is None:
            return False
        return status.is_active

    def end_trial(self) -> None:
        """Terminate the current trial without deleting it."""
        record = self._load_record()
        if record is None:
            logger.info("end_trial called with no trial record; nothing to end")
            return

        record.has_active_trial = False
        self._persist(USER_STORAGE_KEY, record.model_dump_json())
        logger.info(f"Trial ended manually: {record.id}")
        self._track(TrialEventName.TRIAL_ENDED_MANUALLY, {"trial_id": record.id})

    def reset_trial(self) -> None:
        """Erase record, display cache and milestone flags."""
        for key in (USER_STORAGE_KEY, TRIAL_STORAGE_KEY, MILESTONES_STORAGE_KEY):
            try:
                self.store.delete(key)
            except StorageError as e:
                logger.error(f"Failed to delete {key} during trial reset: {e}")
        logger.info("Trial state reset")

    def get_or_create_trial(self) -> TrialStatus:
        existing = self.get_trial_status()
        if existing is not None:
            return existing
        return self.initialize_trial()

    def get_cached_status(self) -> Optional[TrialStatus]:
        """Last computed status from the display cache, without recomputation."""
        raw = self._read(TRIAL_STORAGE_KEY)
        if raw is None:
            return None
        try:
            return TrialStatus.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable trial status cache: {e}")
            return None

    def get_trial_record(self) -> Optional[TrialRecord]:
        return self._load_record()

    def lookup_record(self) -> RecordLookup:
        """Read the persisted record, distinguishing absent from malformed."""
        raw = self._read(USER_STORAGE_KEY)
        if raw is None:
            return RecordLookup(state=LookupState.ABSENT)
        try:
            record = TrialRecord.model_validate_json(raw)
        except ValidationError as e:
            return RecordLookup(state=LookupState.MALFORMED, error=str(e))
        return RecordLookup(state=LookupState.PRESENT, record=record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_record(self) -> Optional[TrialRecord]:
        lookup = self.lookup_record()
        if lookup.state == LookupState.MALFORMED:
            logger.warning(f"Stored trial record is malformed, treating as absent: {lookup.error}")
            return None
        return lookup.record

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.store.get(key)
        except StorageError as e:
            logger.error(f"Failed to read {key}: {e}")
            return None

    def _persist(self, key: str, value: str) -> None:
        try:
            self.store.set(key, value)
        except StorageError as e:
            logger.error(f"Failed to persist {key}, continuing without it: {e}")

    def _load_milestones(self) -> Dict[str, bool]:
        raw = self._read(MILESTONES_STORAGE_KEY)
        if not raw:
            return {}
        try:
            flags = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable milestone flags: {e}")
            return {}
        if not isinstance(flags, dict):
            logger.warning("Ignoring milestone flags that are not a mapping")
            return {}
        return {str(k): bool(v) for k, v in flags.items()}

    def _emit_milestones(self, status: TrialStatus) -> None:
        emitted = self._load_milestones()
        events, flags = reconcile_milestones(status, emitted)
        if not events:
            return
        self._persist(MILESTONES_STORAGE_KEY, json.dumps(flags))
        for event_name, payload in events:
            logger.info(f"Trial milestone reached: {event_name}")
            self._track(TrialEventName(event_name), payload)

    def _track(self, event: TrialEventName, payload: Dict[str, Any]) -> None:
        # analytics is fire-and-forget; its failures never reach the caller
        try:
            self.analytics.track_trial_event(event.value, payload)
        except Exception as e:
            logger.warning(f"Analytics delivery failed for {event.value}: {e}")


# Singleton instance
trial_service = TrialService()
