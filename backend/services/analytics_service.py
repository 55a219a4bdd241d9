"""Analytics Service - local event log for trial, usage and conversion events.

Events are appended to a persisted list and fanned out to registered
listeners. Delivery to an external ingestion endpoint is a listener concern.
Nothing here raises on persistence or listener failure; errors are logged.
"""
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from models import AnalyticsEvent, EventCategory, TrialEventName
from services.storage_adapter import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

ANALYTICS_STORAGE_KEY = "docsmart_analytics"

Listener = Callable[[AnalyticsEvent], None]


class AnalyticsService:
    """Track events and keep them in the key/value store."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._listeners: List[Listener] = []
        self._events: Optional[List[AnalyticsEvent]] = None
        self._events_store: Optional[KeyValueStore] = None
        # handlers run in the threadpool, so appends can come from several threads
        self._lock = threading.RLock()

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            from database import database
            return database.get_store()
        return self._store

    @property
    def events(self) -> List[AnalyticsEvent]:
        """In-memory event list for the current store, reloaded when the store changes."""
        with self._lock:
            store = self.store
            if self._events is None or self._events_store is not store:
                self._events = self._load_stored_events(store)
                self._events_store = store
            return self._events

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track(
        self,
        event: str,
        data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> AnalyticsEvent:
        analytics_event = AnalyticsEvent(
            event=event,
            data=dict(data or {}),
            timestamp=self._clock(),
            user_id=user_id,
        )
        with self._lock:
            store = self.store
            events = self.events
            events.append(analytics_event)
            self._save_events(store, events)

        logger.info("Analytics event: %s %s", event, analytics_event.data)
        self._emit(analytics_event)
        return analytics_event

    def track_trial_event(self, event: str, data: Optional[Dict[str, Any]] = None) -> AnalyticsEvent:
        try:
            name = TrialEventName(event)
        except ValueError:
            raise ValueError(f"Unknown trial event: {event}")
        return self.track(name.value, {**(data or {}), "category": EventCategory.TRIAL.value})

    def track_feature_usage(self, feature: str, data: Optional[Dict[str, Any]] = None) -> AnalyticsEvent:
        return self.track("feature_used", {
            "feature": feature,
            **(data or {}),
            "category": EventCategory.USAGE.value,
        })

    def track_payment_page_view(self, source: str = "unknown") -> AnalyticsEvent:
        return self.track("payment_page_view", {
            "source": source,
            "category": EventCategory.CONVERSION.value,
        })

    def track_plan_selected(self, plan_id: str, source: str = "unknown") -> AnalyticsEvent:
        return self.track("plan_selected", {
            "plan_id": plan_id,
            "source": source,
            "category": EventCategory.CONVERSION.value,
        })

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_events(self) -> List[AnalyticsEvent]:
        with self._lock:
            return list(self.events)

    def get_events_by_category(self, category: str) -> List[AnalyticsEvent]:
        return [e for e in self.get_events() if e.data.get("category") == category]

    def get_trial_events(self) -> List[AnalyticsEvent]:
        return self.get_events_by_category(EventCategory.TRIAL.value)

    def clear_events(self) -> None:
        with self._lock:
            store = self.store
            self._events = []
            self._events_store = store
            self._save_events(store, self._events)

    def export_events(self) -> str:
        return json.dumps([e.model_dump(mode="json") for e in self.get_events()], indent=2)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: AnalyticsEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Analytics listener failed for {event.event}: {e}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_stored_events(self, store: KeyValueStore) -> List[AnalyticsEvent]:
        try:
            stored = store.get(ANALYTICS_STORAGE_KEY)
            if not stored:
                return []
            raw = json.loads(stored)
            return [AnalyticsEvent.model_validate(item) for item in raw]
        except (StorageError, ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Failed to load stored analytics events: {e}")
            return []

    def _save_events(self, store: KeyValueStore, events: List[AnalyticsEvent]) -> None:
        payload = json.dumps([e.model_dump(mode="json") for e in events])
        try:
            store.set(ANALYTICS_STORAGE_KEY, payload)
        except StorageError as e:
            logger.warning(f"Failed to save analytics events: {e}")


# Singleton instance
analytics_service = AnalyticsService()
