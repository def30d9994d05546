"""Shared fixtures: a fixed clock and record factories."""

import itertools
import os
from datetime import datetime, timedelta, timezone

import pytest

# Keep test runs from writing daily log files
os.environ.setdefault("LOG_TO_FILE", "false")

from models.analytics_models import AnalyticsEvent, AnalyticsSession, Lead

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def _next_id(prefix):
    return f"{prefix}-{next(_ids)}"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_session():
    def factory(**fields):
        fields.setdefault("id", _next_id("s"))
        fields.setdefault("started_at", NOW - timedelta(hours=1))
        return AnalyticsSession(**fields)
    return factory


@pytest.fixture
def make_event():
    def factory(event_name, at=None, session_id=None, props=None, **fields):
        return AnalyticsEvent(
            id=fields.pop("id", _next_id("e")),
            event_name=event_name,
            occurred_at=at or NOW - timedelta(hours=1),
            session_id=session_id,
            props=props,
            **fields,
        )
    return factory


@pytest.fixture
def make_lead():
    def factory(**fields):
        fields.setdefault("id", _next_id("l"))
        fields.setdefault("created_at", NOW - timedelta(days=1))
        return Lead(**fields)
    return factory
