"""
Pytest configuration and shared fixtures for backend tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Keep tests off the on-disk store.
os.environ.setdefault("STORAGE_BACKEND", "memory")

BACKEND_DIR = Path(__file__).resolve().parent.parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from services.storage_adapter import InMemoryKeyValueStore
from services.analytics_service import AnalyticsService
from services.trial_service import TrialService
from services.demo_timer import DemoTimer
from database import Database

T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> datetime:
        self.now = when
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def analytics(store, clock):
    return AnalyticsService(store=store, clock=clock)


@pytest.fixture
def trial(store, analytics, clock):
    return TrialService(store=store, analytics=analytics, clock=clock)


def trial_event_names(analytics_service):
    return [e.event for e in analytics_service.get_trial_events()]


@pytest.fixture
def demo_timer(clock):
    return DemoTimer(clock=clock)


@pytest.fixture
def client(trial, analytics, demo_timer, store):
    """TestClient with the route singletons swapped for fixture-backed services."""
    from server import app

    db = Database()
    db.use(store)
    with patch("routes.trial.trial_service", trial), \
         patch("middleware.trial_gating.trial_service", trial), \
         patch("routes.trial.analytics_service", analytics), \
         patch("routes.analytics.analytics_service", analytics), \
         patch("routes.demo.demo_timer", demo_timer), \
         patch("routes.user_data.database", db):
        yield TestClient(app)
