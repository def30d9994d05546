"""
Marketing Analytics Analyzer
=============================
Turns analytics sessions, tracked events and sales leads into the metrics
behind the marketing dashboard and writes a snapshot to
data/processed/marketing_metrics.json.

Each analyzer is a stateless fold over the records it is given and returns
a plain dict. Panels pair an analyzer with the fetches it needs; a panel
whose fetch fails falls back to the analyzer's zero state without touching
the other panels.

Exports:
    SessionAnalyzer, AcquisitionAnalyzer, FunnelAnalyzer, BlogAnalyzer,
    LeadPipelineAnalyzer, ReplyTimeAnalyzer, WhatsAppLeadAnalyzer,
    KPIAnalyzer, build_dashboard, run_marketing_analysis
"""

from __future__ import annotations

import argparse
import copy
import json
import re
import sys
from collections import Counter, defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from insights.fetch_analytics import (
    fetch_events_by_name,
    fetch_leads,
    fetch_posts,
    fetch_sessions,
)
from insights.lib.date_range import (
    PIPELINE_TIMEFRAMES,
    RANGE_TOKENS,
    DateRange,
    resolve_range,
    resolve_timeframe,
    trailing_window,
)
from insights.lib.errors import ConfigError, DataError
from insights.lib.logger import setup_logger
from insights.lib.props import get_boolean, get_number, get_string
from insights.lib.stats import (
    days_between,
    mean,
    now_utc,
    percentage,
    round_half_up,
    safe_div,
    stable_rank,
    upper_median,
    whole_days_between,
)
from insights.lib.utils import atomic_write_json
from models.analytics_models import (
    BLOG_CTA_PLACEMENTS,
    DEVICE_TYPES,
    LEAD_STATUSES,
    AnalyticsEvent,
    AnalyticsSession,
    EventName,
    Lead,
    Post,
)

# ---------------------------------------------------------------------------
# Path setup
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent          # lead-funnel-insights/
PROCESSED_DIR = BASE_DIR / "data" / "processed"
OUTPUT_PATH = PROCESSED_DIR / "marketing_metrics.json"

load_dotenv(BASE_DIR / ".env")

logger = setup_logger("marketing_analyzer")

# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    "top_sources_limit": 5,
    "funnel_window_days": 7,
    "blog_window_days": 30,
    "whatsapp_window_days": 30,
}

FAST_REPLY_MINUTES = 15
SLOW_REPLY_MINUTES = 60

FUNNEL_STEP_NAMES = ("Landing Page Views", "Pricing Page Views", "WhatsApp Clicks")

# (label, inclusive upper bound in whole days); None closes the last bucket
TIME_TO_CLOSE_COHORTS: Tuple[Tuple[str, Optional[int]], ...] = (
    ("≤7 days", 7),
    ("8-30 days", 30),
    ("31-60 days", 60),
    (">60 days", None),
)

SNAPSHOT_SOURCE = "marketing"


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def _of_type(events: Iterable[AnalyticsEvent], name: str) -> List[AnalyticsEvent]:
    """Events with the given event_name, input order kept."""
    return [e for e in events if e.event_name == name]


def _within(events: Iterable[AnalyticsEvent], window: DateRange) -> List[AnalyticsEvent]:
    return [e for e in events if window.contains(e.occurred_at)]


def _is_landing_path(path: str) -> bool:
    return path == "/" or path.startswith("/services")


def _is_qualified(lead: Lead) -> bool:
    """A lead that has moved past 'new' (any later status, won and lost included)."""
    return lead.status is not None and lead.status != "new"


def _is_won_with_value(lead: Lead) -> bool:
    return lead.status == "won" and lead.deal_value is not None


def _slug_to_title(slug: str) -> str:
    """'pricing-for-startups' -> 'Pricing For Startups'."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " "))


def _cohort_label(days: int) -> str:
    for label, upper in TIME_TO_CLOSE_COHORTS:
        if upper is None or days <= upper:
            return label
    return TIME_TO_CLOSE_COHORTS[-1][0]


def _log_dropped(analyzer: str, field: str, dropped: Counter) -> None:
    """Report records left out of typed buckets because of an unknown value."""
    total = sum(dropped.values())
    if total:
        logger.info(
            "%s excluded %d record(s) with unrecognised %s: %s",
            analyzer, total, field, dict(dropped),
        )


def _pct(part: float, whole: float) -> float:
    return round(percentage(part, whole), 2)


# ============================================================================
# Analyzer Classes
# ============================================================================

class SessionAnalyzer:
    """Session totals, unique users, device mix and new vs returning visitors."""

    def analyze(self, sessions: Sequence[AnalyticsSession]) -> Dict[str, Any]:
        total = len(sessions)
        users = {s.user_id for s in sessions if s.user_id}
        devices: Dict[str, int] = {d: 0 for d in DEVICE_TYPES}
        dropped: Counter = Counter()
        returning = 0

        for s in sessions:
            if s.device_type in devices:
                devices[s.device_type] += 1
            else:
                dropped[s.device_type] += 1
            if s.is_returning:
                returning += 1

        _log_dropped("SessionAnalyzer", "device_type", dropped)

        known_devices = sum(devices.values())
        new = total - returning

        return {
            "total_sessions": total,
            "unique_users": len(users),
            "device_breakdown": devices,
            "device_percentages": {
                d: _pct(count, known_devices) for d, count in devices.items()
            },
            "new_vs_returning": {"new": new, "returning": returning},
            "new_vs_returning_percentages": {
                "new": _pct(new, total),
                "returning": _pct(returning, total),
            },
            "dropped_records": {"device_type": sum(dropped.values())},
        }


class AcquisitionAnalyzer:
    """Top traffic sources and the WhatsApp redirects each one produced."""

    def __init__(self, limit: int = DEFAULT_CONFIG["top_sources_limit"]):
        self.limit = limit

    def analyze(
        self,
        sessions: Sequence[AnalyticsSession],
        events: Sequence[AnalyticsEvent],
    ) -> Dict[str, Any]:
        redirects = _of_type(events, EventName.WHATSAPP_REDIRECT)

        # Counter keeps first-seen order, which stable_rank preserves on ties
        sessions_by_source: Counter = Counter()
        for s in sessions:
            sessions_by_source[s.utm_source or "direct"] += 1

        redirects_by_source: Counter = Counter(
            get_string(e.props, "utm_source") for e in redirects
        )

        sources = [
            {
                "source": source,
                "sessions": count,
                "conversions": redirects_by_source.get(source, 0),
                "conversion_rate": _pct(redirects_by_source.get(source, 0), count),
            }
            for source, count in sessions_by_source.items()
        ]
        top_sources = stable_rank(sources, "sessions", self.limit)

        return {
            "top_sources": top_sources,
            "total_conversions": sum(s["conversions"] for s in top_sources),
            "source_count": len(sessions_by_source),
        }


class FunnelAnalyzer:
    """Landing -> pricing view -> WhatsApp click funnel over a fixed trailing window."""

    def __init__(self, window_days: int = DEFAULT_CONFIG["funnel_window_days"]):
        self.window_days = window_days

    @staticmethod
    def _step(name: str, count: int, previous: Optional[int]) -> Dict[str, Any]:
        if previous is None:
            return {"name": name, "count": count, "percentage": 100.0, "dropoff": None}
        return {
            "name": name,
            "count": count,
            "percentage": _pct(count, previous),
            "dropoff": max(previous - count, 0),
        }

    def analyze(
        self,
        events: Sequence[AnalyticsEvent],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        window = trailing_window(self.window_days, now)
        recent = _within(events, window)

        landing_views = sum(
            1 for e in _of_type(recent, EventName.PAGE_VIEW)
            if _is_landing_path(get_string(e.props, "path"))
        )
        pricing_views = len(_of_type(recent, EventName.PRICING_VIEW))
        clicks = _of_type(recent, EventName.PRICING_CTA_CLICK)

        landing_name, pricing_name, clicks_name = FUNNEL_STEP_NAMES
        steps = [
            self._step(landing_name, landing_views, None),
            self._step(pricing_name, pricing_views, landing_views),
            self._step(clicks_name, len(clicks), pricing_views),
        ]

        placements: Dict[str, Dict[str, Any]] = {}
        for click in clicks:
            placement = get_string(click.props, "placement", "unknown")
            entry = placements.setdefault(placement, {"clicks": 0, "services": set()})
            entry["clicks"] += 1
            service = get_string(click.props, "service")
            if service:
                entry["services"].add(service)

        cta_performance = {
            placement: {"clicks": entry["clicks"], "services": sorted(entry["services"])}
            for placement, entry in placements.items()
        }

        return {
            "window": window.as_dict(),
            "steps": steps,
            "overall_conversion": _pct(len(clicks), landing_views),
            "cta_performance": cta_performance,
        }


class BlogAnalyzer:
    """Per-post engagement, last-touch assisted leads and CTA clicks by placement."""

    def __init__(self, window_days: int = DEFAULT_CONFIG["blog_window_days"]):
        self.window_days = window_days

    @staticmethod
    def _last_read_before(
        reads: Sequence[AnalyticsEvent], ts: datetime
    ) -> Optional[AnalyticsEvent]:
        """Most recent read strictly before ts; on equal timestamps the later record wins."""
        last = None
        for read in reads:
            if read.occurred_at < ts and (last is None or read.occurred_at >= last.occurred_at):
                last = read
        return last

    def analyze(
        self,
        events: Sequence[AnalyticsEvent],
        posts: Optional[Sequence[Post]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        window = trailing_window(self.window_days, now)
        recent = _within(events, window)
        reads = _of_type(recent, EventName.BLOG_READ)
        cta_clicks = _of_type(recent, EventName.BLOG_CTA_CLICK)
        redirects = _of_type(recent, EventName.WHATSAPP_REDIRECT)
        titles = {p.slug: p.title for p in posts or []}

        # Per-post reads
        post_stats: Dict[str, Dict[str, Any]] = {}
        for read in reads:
            slug = get_string(read.props, "post_slug")
            if not slug:
                continue
            stats = post_stats.get(slug)
            if stats is None:
                stats = post_stats[slug] = {
                    "slug": slug,
                    "title": titles.get(slug) or _slug_to_title(slug),
                    "views": 0,
                    "total_read_time": 0.0,
                    "scroll75_count": 0,
                    "assisted_leads": 0,
                }
            stats["views"] += 1
            stats["total_read_time"] += get_number(read.props, "read_time_sec")
            if get_boolean(read.props, "scroll_75"):
                stats["scroll75_count"] += 1

        # Assisted leads: attribute each redirect to the session's last prior read
        reads_by_session: Dict[str, List[AnalyticsEvent]] = defaultdict(list)
        for read in reads:
            if read.session_id:
                reads_by_session[read.session_id].append(read)

        total_assisted = 0
        for redirect in redirects:
            if not redirect.session_id:
                continue
            last_touch = self._last_read_before(
                reads_by_session.get(redirect.session_id, []), redirect.occurred_at,
            )
            if last_touch is None:
                continue
            total_assisted += 1
            slug = get_string(last_touch.props, "post_slug")
            if slug in post_stats:
                post_stats[slug]["assisted_leads"] += 1

        top_posts = stable_rank(
            [
                {
                    "slug": s["slug"],
                    "title": s["title"],
                    "views": s["views"],
                    "avg_read_time": round_half_up(safe_div(s["total_read_time"], s["views"])),
                    "scroll75_rate": _pct(s["scroll75_count"], s["views"]),
                    "assisted_leads": s["assisted_leads"],
                }
                for s in post_stats.values()
            ],
            "views",
        )

        # CTA clicks, typed to the three known placements
        clicks_by_post: Dict[str, Dict[str, int]] = {}
        dropped: Counter = Counter()
        for click in cta_clicks:
            slug = get_string(click.props, "post_slug")
            if not slug:
                continue
            cta_type = get_string(click.props, "cta_type", "unknown")
            counts = clicks_by_post.setdefault(slug, {p: 0 for p in BLOG_CTA_PLACEMENTS})
            if cta_type in counts:
                counts[cta_type] += 1
            else:
                dropped[cta_type] += 1

        _log_dropped("BlogAnalyzer", "cta_type", dropped)

        ranked_clicks = sorted(
            clicks_by_post.items(), key=lambda item: sum(item[1].values()), reverse=True,
        )
        cta_clicks_by_post = {
            slug: {**counts, "total": sum(counts.values())}
            for slug, counts in ranked_clicks
        }

        total_views = len(reads)
        total_read_time = sum(get_number(r.props, "read_time_sec") for r in reads)

        return {
            "window": window.as_dict(),
            "top_posts": top_posts,
            "total_views": total_views,
            "total_assisted_leads": total_assisted,
            "avg_read_time": round_half_up(safe_div(total_read_time, total_views)),
            "assisted_conversion_rate": _pct(total_assisted, total_views),
            "cta_clicks_by_post": cta_clicks_by_post,
            "dropped_records": {"cta_type": sum(dropped.values())},
        }


class LeadPipelineAnalyzer:
    """Stage counts, win rate, deal size, revenue splits and time-to-close cohorts."""

    def analyze(self, leads: Sequence[Lead]) -> Dict[str, Any]:
        stages: Dict[str, int] = {s: 0 for s in LEAD_STATUSES}
        dropped: Counter = Counter()
        for lead in leads:
            if lead.status in stages:
                stages[lead.status] += 1
            else:
                dropped[lead.status] += 1

        _log_dropped("LeadPipelineAnalyzer", "status", dropped)

        won_values = [l.deal_value for l in leads if _is_won_with_value(l)]

        revenue_by_source: Dict[str, float] = {}
        for lead in leads:
            if _is_won_with_value(lead):
                source = lead.source if lead.source is not None else "direct"
                revenue_by_source[source] = revenue_by_source.get(source, 0.0) + lead.deal_value

        deals_by_service: Dict[str, Dict[str, float]] = {}
        for lead in leads:
            service = lead.service_interest if lead.service_interest is not None else "general"
            entry = deals_by_service.setdefault(service, {"count": 0, "value": 0.0})
            entry["count"] += 1
            if _is_won_with_value(lead):
                entry["value"] += lead.deal_value

        closed = [l for l in leads if l.closed_at is not None]
        close_days = [days_between(l.created_at, l.closed_at) for l in closed]

        cohorts: Dict[str, int] = {label: 0 for label, _ in TIME_TO_CLOSE_COHORTS}
        for lead in closed:
            cohorts[_cohort_label(whole_days_between(lead.created_at, lead.closed_at))] += 1

        return {
            "stages": stages,
            "total_leads": sum(stages.values()),
            "win_rate": _pct(stages["won"], stages["won"] + stages["lost"]),
            "avg_deal_size": round(mean(won_values), 2),
            "avg_time_to_close": round(mean(close_days), 1),
            "revenue_by_source": {k: round(v, 2) for k, v in revenue_by_source.items()},
            "total_revenue": round(sum(revenue_by_source.values()), 2),
            "deals_by_service": {
                k: {"count": v["count"], "value": round(v["value"], 2)}
                for k, v in deals_by_service.items()
            },
            "time_to_close_cohorts": cohorts,
            "dropped_records": {"status": sum(dropped.values())},
        }


class ReplyTimeAnalyzer:
    """
    WhatsApp reply latency for leads created in a trailing window.

    The median is the element at floor(n/2) of the sorted values, which is
    the upper middle value for even counts. Dashboards have always shown
    that figure, so it is kept as is.
    """

    def __init__(self, window_days: int = DEFAULT_CONFIG["whatsapp_window_days"]):
        self.window_days = window_days

    def analyze(
        self,
        leads: Sequence[Lead],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        window = trailing_window(self.window_days, now)
        times = [
            l.reply_time_minutes for l in leads
            if l.reply_time_minutes is not None and window.contains(l.created_at)
        ]

        under_fast = sum(1 for t in times if t <= FAST_REPLY_MINUTES)
        under_slow = sum(1 for t in times if t <= SLOW_REPLY_MINUTES)
        over_slow = sum(1 for t in times if t > SLOW_REPLY_MINUTES)

        return {
            "window": window.as_dict(),
            "median": upper_median(times),
            "under_15_min": under_fast,
            "under_1_hour": under_slow,
            "over_1_hour": over_slow,
            "between_15_and_60_min": under_slow - under_fast,
            "fast_reply_rate": _pct(under_fast, len(times)),
            "sample_size": len(times),
        }


class WhatsAppLeadAnalyzer:
    """WhatsApp redirects by source and service, with lead conversion per source."""

    def analyze(
        self,
        events: Sequence[AnalyticsEvent],
        leads: Sequence[Lead],
    ) -> Dict[str, Any]:
        redirects = _of_type(events, EventName.WHATSAPP_REDIRECT)

        leads_by_source: Counter = Counter()
        leads_by_service: Counter = Counter()
        for e in redirects:
            source = get_string(e.props, "utm_source") or get_string(e.props, "source", "direct")
            leads_by_source[source] += 1
            leads_by_service[get_string(e.props, "service", "general")] += 1

        conversion_by_source = {}
        for source, count in leads_by_source.items():
            source_leads = [l for l in leads if l.source == source]
            conversion_by_source[source] = {
                "leads": count,
                "qualified": sum(1 for l in source_leads if _is_qualified(l)),
                "closed": sum(1 for l in source_leads if l.status == "won"),
            }

        return {
            "total_leads": len(redirects),
            "leads_by_source": dict(leads_by_source.most_common()),
            "leads_by_service": dict(leads_by_service.most_common()),
            "conversion_by_source": conversion_by_source,
        }


class KPIAnalyzer:
    """Headline KPI cards for the selected dashboard range."""

    def analyze(
        self,
        sessions: Sequence[AnalyticsSession],
        events: Sequence[AnalyticsEvent],
        leads: Sequence[Lead],
    ) -> Dict[str, Any]:
        whatsapp_leads = len(_of_type(events, EventName.WHATSAPP_REDIRECT))
        pricing_views = len(_of_type(events, EventName.PRICING_VIEW))
        qualified = sum(1 for l in leads if _is_qualified(l))
        won = sum(1 for l in leads if l.status == "won")
        revenue = sum(l.deal_value for l in leads if _is_won_with_value(l))
        reply_times = [l.reply_time_minutes for l in leads if l.reply_time_minutes is not None]

        return {
            "sessions": len(sessions),
            "users": len({s.user_id for s in sessions if s.user_id}),
            "whatsapp_leads": whatsapp_leads,
            "pricing_wa_conversion": _pct(whatsapp_leads, pricing_views),
            "qualified_lead_rate": _pct(qualified, whatsapp_leads),
            "close_rate": _pct(won, qualified),
            "revenue": round(revenue, 2),
            "median_reply_time": upper_median(reply_times),
        }


# ============================================================================
# Panels
# ============================================================================

def _run_panel(
    name: str,
    fetches: Dict[str, Callable[[], Any]],
    analyze: Callable[..., Dict[str, Any]],
    sections: Optional[Dict[str, Tuple[str, ...]]] = None,
) -> Dict[str, Any]:
    """
    Fetch each input independently, then analyze.

    An input whose fetch raises a DataError is replaced by an empty list, so
    only the results built from it fall back to their zero state. `sections`
    maps each part of the panel's data to the inputs it reads and is used to
    report which parts are degraded.
    """
    inputs: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    for key, fetch in fetches.items():
        try:
            inputs[key] = fetch()
        except DataError as e:
            logger.error("Panel '%s' input '%s' unavailable: %s", name, key, e)
            inputs[key], errors[key] = [], str(e)

    degraded_sections = [
        section for section, needs in (sections or {}).items()
        if any(key in errors for key in needs)
    ]

    return {
        "panel": name,
        "status": "degraded" if errors else "ok",
        "error": "; ".join(f"{key}: {msg}" for key, msg in errors.items()) or None,
        "failed_inputs": sorted(errors),
        "degraded_sections": degraded_sections,
        "data": analyze(**inputs),
    }


def _flatten(batches: Dict[str, List[AnalyticsEvent]]) -> List[AnalyticsEvent]:
    return [e for batch in batches.values() for e in batch]


def build_overview_panel(
    range_token: str = "7d",
    now: Optional[datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """KPI cards, traffic and acquisition for the selected range."""
    config = config or DEFAULT_CONFIG
    window = resolve_range(range_token, now)

    def analyze(sessions, events, leads):
        return {
            "range": range_token,
            "window": window.as_dict(),
            "kpis": KPIAnalyzer().analyze(sessions, events, leads),
            "traffic": SessionAnalyzer().analyze(sessions),
            "acquisition": AcquisitionAnalyzer(config["top_sources_limit"]).analyze(sessions, events),
        }

    return _run_panel(
        "overview",
        {
            "sessions": lambda: fetch_sessions(window),
            "events": lambda: _flatten(fetch_events_by_name(
                window, (EventName.WHATSAPP_REDIRECT, EventName.PRICING_VIEW),
            )),
            "leads": lambda: fetch_leads(window),
        },
        analyze,
        sections={
            "kpis": ("sessions", "events", "leads"),
            "traffic": ("sessions",),
            "acquisition": ("sessions", "events"),
        },
    )


def build_funnel_panel(
    now: Optional[datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Pricing funnel over the fixed trailing window."""
    config = config or DEFAULT_CONFIG
    now = now or now_utc()
    analyzer = FunnelAnalyzer(config["funnel_window_days"])
    window = trailing_window(analyzer.window_days, now)

    return _run_panel(
        "funnel",
        {"events": lambda: _flatten(fetch_events_by_name(
            window,
            (EventName.PAGE_VIEW, EventName.PRICING_VIEW, EventName.PRICING_CTA_CLICK),
        ))},
        lambda events: analyzer.analyze(events, now),
    )


def build_blog_panel(
    now: Optional[datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Blog engagement and assisted leads over the fixed trailing window."""
    config = config or DEFAULT_CONFIG
    now = now or now_utc()
    analyzer = BlogAnalyzer(config["blog_window_days"])
    window = trailing_window(analyzer.window_days, now)

    return _run_panel(
        "blog",
        {
            "events": lambda: _flatten(fetch_events_by_name(
                window,
                (EventName.BLOG_READ, EventName.BLOG_CTA_CLICK, EventName.WHATSAPP_REDIRECT),
            )),
            "posts": fetch_posts,
        },
        lambda events, posts: analyzer.analyze(events, posts, now),
    )


def build_pipeline_panel(
    timeframe: str = "30d",
    now: Optional[datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Lead pipeline for the 30d / 90d / all timeframe."""
    window = resolve_timeframe(timeframe, now)

    def analyze(leads):
        return {
            "timeframe": timeframe,
            "window": window.as_dict(),
            **LeadPipelineAnalyzer().analyze(leads),
        }

    return _run_panel("pipeline", {"leads": lambda: fetch_leads(window)}, analyze)


def build_whatsapp_panel(
    now: Optional[datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """WhatsApp leads by source/service and reply times over the trailing window."""
    config = config or DEFAULT_CONFIG
    now = now or now_utc()
    reply_analyzer = ReplyTimeAnalyzer(config["whatsapp_window_days"])
    window = trailing_window(reply_analyzer.window_days, now)

    def analyze(events, leads):
        return {
            "window": window.as_dict(),
            **WhatsAppLeadAnalyzer().analyze(events, leads),
            "reply_times": reply_analyzer.analyze(leads, now),
        }

    return _run_panel(
        "whatsapp",
        {
            "events": lambda: fetch_events_by_name(
                window, (EventName.WHATSAPP_REDIRECT,),
            )[EventName.WHATSAPP_REDIRECT],
            "leads": lambda: fetch_leads(window),
        },
        analyze,
        sections={
            "leads_by_source": ("events",),
            "leads_by_service": ("events",),
            "conversion_by_source": ("events", "leads"),
            "reply_times": ("leads",),
        },
    )


def build_dashboard(
    range_token: str = "7d",
    timeframe: str = "30d",
    now: Optional[datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Dict[str, Any]]:
    """Build every panel sequentially, keyed by panel name."""
    config = config or DEFAULT_CONFIG
    now = now or now_utc()

    # Validate tokens before any fetch
    resolve_range(range_token, now)
    resolve_timeframe(timeframe, now)

    panels = [
        build_overview_panel(range_token, now, config),
        build_funnel_panel(now, config),
        build_blog_panel(now, config),
        build_pipeline_panel(timeframe, now, config),
        build_whatsapp_panel(now, config),
    ]
    return {p["panel"]: p for p in panels}


# ============================================================================
# Configuration
# ============================================================================

def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    DEFAULT_CONFIG, optionally overridden by a JSON file.

    Raises:
        ConfigError: If the file cannot be read, is not a JSON object,
            contains unknown keys, or sets a value that is not a positive integer.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not path:
        return config

    try:
        with open(path, "r", encoding="utf-8") as fh:
            overrides = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file: {e}", config_path=str(path)) from e

    if not isinstance(overrides, dict):
        raise ConfigError("Config file must contain a JSON object", config_path=str(path))

    unknown = sorted(set(overrides) - set(DEFAULT_CONFIG))
    if unknown:
        raise ConfigError(
            f"Unknown config keys: {', '.join(unknown)}", config_path=str(path),
        )

    for key, value in overrides.items():
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(
                f"Config value for {key} must be a positive integer, got {value!r}",
                config_path=str(path),
            )

    config.update(overrides)
    return config


# ============================================================================
# Runner
# ============================================================================

def run_marketing_analysis(
    range_token: str = "7d",
    timeframe: str = "30d",
    config: Optional[Dict[str, Any]] = None,
    output_path: Optional[Path] = None,
    sync: bool = False,
) -> Dict[str, Any]:
    """Build every panel, save the snapshot, and optionally push it to Supabase.

    Returns the full metrics dictionary.
    """
    config = config or DEFAULT_CONFIG
    output_path = Path(output_path) if output_path else OUTPUT_PATH
    now = now_utc()

    logger.info("Starting marketing analysis (range=%s, timeframe=%s)", range_token, timeframe)
    panels = build_dashboard(range_token, timeframe, now, config)

    degraded = [name for name, p in panels.items() if p["status"] != "ok"]
    if degraded:
        logger.warning("Degraded panels: %s", ", ".join(degraded))

    output = {
        "generated_at": now.isoformat(),
        "data_source": "supabase",
        "range": range_token,
        "timeframe": timeframe,
        "panels": panels,
        "degraded_panels": degraded,
        "config_used": config,
    }

    if atomic_write_json(output, output_path):
        logger.info("Analysis complete. Output saved to %s", output_path)

    if sync:
        from insights.lib.supabase_client import store_snapshot
        store_snapshot(SNAPSHOT_SOURCE, output)

    return output


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build marketing dashboard metrics")
    parser.add_argument("--range", dest="range_token", default="7d", choices=RANGE_TOKENS,
                        help="Dashboard range for the overview panel")
    parser.add_argument("--timeframe", default="30d", choices=PIPELINE_TIMEFRAMES,
                        help="Lead pipeline timeframe")
    parser.add_argument("--config", help="JSON file overriding DEFAULT_CONFIG")
    parser.add_argument("--output", help=f"Output path (default: {OUTPUT_PATH})")
    parser.add_argument("--sync", action="store_true",
                        help="Also insert the snapshot into dashboard_snapshots")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    results = run_marketing_analysis(
        args.range_token, args.timeframe, config, args.output, args.sync,
    )
    print(f"\nAnalysis complete. {len(results['panels'])} panels built, "
          f"{len(results['degraded_panels'])} degraded.")
    print(f"Output: {args.output or OUTPUT_PATH}")
    return 1 if len(results["degraded_panels"]) == len(results["panels"]) else 0


# ============================================================================
# Standalone entry point
# ============================================================================

if __name__ == "__main__":
    sys.exit(main())
