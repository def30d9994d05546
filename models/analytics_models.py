"""
Lead Funnel Insights: Record Models
======================================

Pydantic models for the rows the analyzers read from Supabase:
analytics sessions, analytics events, leads and blog posts.

Fields mirror the table columns. Optional columns stay None when absent;
the analyzers decide per metric what a missing value means.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Known values ────────────────────────────────────────────

DEVICE_TYPES = ("mobile", "desktop", "tablet")
LEAD_STATUSES = ("new", "qualified", "proposal", "won", "lost")
CLOSED_STATUSES = ("won", "lost")
BLOG_CTA_PLACEMENTS = ("inline", "banner", "footer")


class EventName:
    """event_name values written by the site's tracking code."""
    PAGE_VIEW = "page_view"
    PRICING_VIEW = "pricing_view"
    PRICING_CTA_CLICK = "pricing_cta_click"
    WHATSAPP_REDIRECT = "whatsapp_redirect"
    BLOG_READ = "blog_read"
    BLOG_CTA_CLICK = "blog_cta_click"
    SCROLL_DEPTH = "scroll_depth"


# ─── Base ───────────────────────────────────────────────────

class _Record(BaseModel):
    """Read-only row; extra columns are ignored, timestamps normalised to UTC."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("*", mode="after")
    @classmethod
    def _utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ─── Records ────────────────────────────────────────────────

class AnalyticsSession(_Record):
    """One visit, created on first page load (analytics_sessions)."""
    id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    user_id: Optional[str] = None
    device_type: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    country: Optional[str] = None
    landing_page: Optional[str] = None
    referrer: Optional[str] = None
    is_returning: Optional[bool] = None
    page_views: Optional[int] = None


class AnalyticsEvent(_Record):
    """One tracked event (analytics_events). props is untyped JSON."""
    id: str
    event_name: str
    occurred_at: datetime
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    click_id: Optional[str] = None
    props: Any = None


class Lead(_Record):
    """Sales pipeline record (leads)."""
    id: str
    created_at: datetime
    closed_at: Optional[datetime] = None
    status: Optional[str] = None
    source: Optional[str] = None
    medium: Optional[str] = None
    campaign: Optional[str] = None
    service_interest: Optional[str] = None
    deal_value: Optional[float] = None
    reply_time_minutes: Optional[float] = None
    session_id: Optional[str] = None
    click_id: Optional[str] = None
    first_contact_at: Optional[datetime] = None
    qualified_at: Optional[datetime] = None
    proposal_sent_at: Optional[datetime] = None
    reason_lost: Optional[str] = None


class Post(_Record):
    """Blog post; only slug and title matter to analytics."""
    id: str
    slug: str
    title: str
    content: Optional[str] = None
    published: bool = False
    published_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("published", mode="before")
    @classmethod
    def _null_published(cls, value: Any) -> Any:
        return False if value is None else value
