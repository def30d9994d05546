"""
Analytics Record Fetcher
=========================
Reads sessions, events, leads and posts from Supabase for a time window and
validates them into typed records.

Rows that fail validation are skipped and logged; a failing request raises
DataFetchError so the caller can degrade the affected panel.

Exports:
    fetch_sessions, fetch_events, fetch_leads, fetch_posts
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from insights.lib.date_range import DateRange
from insights.lib.logger import setup_logger
from insights.lib.supabase_client import fetch_window, fetch_lookup
from models.analytics_models import AnalyticsEvent, AnalyticsSession, Lead, Post

logger = setup_logger("fetch_analytics")

SESSIONS_TABLE = "analytics_sessions"
EVENTS_TABLE = "analytics_events"
LEADS_TABLE = "leads"
POSTS_TABLE = "posts"

RecordT = TypeVar("RecordT", bound=BaseModel)


def parse_rows(model: Type[RecordT], rows: Iterable[Dict], table: str) -> List[RecordT]:
    """Validate raw rows into model instances, skipping the ones that don't fit."""
    records: List[RecordT] = []
    skipped = 0
    for row in rows:
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "Skipping invalid %s row %s: %d validation error(s)",
                table, row.get("id", "?") if isinstance(row, dict) else "?",
                e.error_count(),
            )
    if skipped:
        logger.warning("Skipped %d/%d invalid rows from %s", skipped, skipped + len(records), table)
    return records


def fetch_sessions(window: DateRange) -> List[AnalyticsSession]:
    """Sessions started inside the window."""
    rows = fetch_window(SESSIONS_TABLE, "started_at", window.start, window.end)
    return parse_rows(AnalyticsSession, rows, SESSIONS_TABLE)


def fetch_events(window: DateRange, event_name: str) -> List[AnalyticsEvent]:
    """Events of one name that occurred inside the window, oldest first."""
    rows = fetch_window(
        EVENTS_TABLE, "occurred_at", window.start, window.end,
        filters={"event_name": event_name},
    )
    return parse_rows(AnalyticsEvent, rows, EVENTS_TABLE)


def fetch_events_by_name(window: DateRange, event_names: Iterable[str]) -> Dict[str, List[AnalyticsEvent]]:
    """fetch_events for several names; one failure fails the whole call."""
    return {name: fetch_events(window, name) for name in event_names}


def fetch_leads(window: DateRange) -> List[Lead]:
    """Leads created inside the window."""
    rows = fetch_window(LEADS_TABLE, "created_at", window.start, window.end)
    return parse_rows(Lead, rows, LEADS_TABLE)


def fetch_posts(published_only: bool = True, limit: int = 500) -> List[Post]:
    """
    Blog posts for slug -> title lookup.

    Title lookup is cosmetic, so a failed query yields an empty list rather
    than DataFetchError.
    """
    filters: Optional[Dict] = {"published": True} if published_only else None
    rows = fetch_lookup(
        POSTS_TABLE,
        select="id, slug, title, published, published_at, tags",
        filters=filters,
        order_by="published_at",
        limit=limit,
    )
    return parse_rows(Post, rows, POSTS_TABLE)

