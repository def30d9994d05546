"""
Lead Funnel Insights: Analytics Router
=========================================
Dashboard panels computed from analytics sessions, events and leads.

Endpoints:
  GET /api/analytics/overview    - KPIs, traffic and acquisition for ?range=
  GET /api/analytics/funnel      - Pricing funnel (trailing 7 days)
  GET /api/analytics/blog        - Blog engagement + assisted leads (trailing 30 days)
  GET /api/analytics/pipeline    - Lead pipeline for ?timeframe=30d|90d|all
  GET /api/analytics/whatsapp    - WhatsApp leads + reply times (trailing 30 days)
  GET /api/analytics/dashboard   - Every panel, fetched concurrently
  GET /api/analytics/snapshot    - Latest stored snapshot
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict

from fastapi import APIRouter, HTTPException, Query

from insights.lib.date_range import resolve_range, resolve_timeframe
from insights.lib.errors import InvalidRangeTokenError
from insights.lib.logger import setup_logger
from insights.lib.stats import now_utc
from insights.marketing_analyzer import (
    SNAPSHOT_SOURCE,
    build_blog_panel,
    build_funnel_panel,
    build_overview_panel,
    build_pipeline_panel,
    build_whatsapp_panel,
)

logger = setup_logger("analytics_router")

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

RANGE_QUERY = Query("7d", alias="range", description="today | 7d | 30d | 90d | all")
TIMEFRAME_QUERY = Query("30d", description="30d | 90d | all")


async def _panel(name: str, builder: Callable[..., Dict[str, Any]], *args) -> Dict[str, Any]:
    """Run a blocking panel builder in a worker thread."""
    try:
        return await asyncio.to_thread(builder, *args)
    except InvalidRangeTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Panel '%s' failed: %s", name, e)
        raise HTTPException(status_code=500, detail=f"Failed to build {name} panel")


@router.get("/overview")
async def overview(range_token: str = RANGE_QUERY):
    """KPI cards, sessions/devices and top sources for the selected range."""
    return await _panel("overview", build_overview_panel, range_token)


@router.get("/funnel")
async def funnel():
    """Landing -> pricing -> WhatsApp funnel and CTA placement breakdown."""
    return await _panel("funnel", build_funnel_panel)


@router.get("/blog")
async def blog():
    """Per-post views, read time, scroll depth, assisted leads and CTA clicks."""
    return await _panel("blog", build_blog_panel)


@router.get("/pipeline")
async def pipeline(timeframe: str = TIMEFRAME_QUERY):
    """Lead stages, win rate, deal size and time-to-close cohorts."""
    return await _panel("pipeline", build_pipeline_panel, timeframe)


@router.get("/whatsapp")
async def whatsapp():
    """WhatsApp leads by source/service and reply-time buckets."""
    return await _panel("whatsapp", build_whatsapp_panel)


@router.get("/dashboard")
async def dashboard(
    range_token: str = RANGE_QUERY,
    timeframe: str = TIMEFRAME_QUERY,
):
    """
    Every panel at once. Panels fetch concurrently and fail independently:
    a panel whose data cannot be read comes back with status "degraded" and
    zeroed metrics while the rest are unaffected.
    """
    now = now_utc()
    try:
        resolve_range(range_token, now)
        resolve_timeframe(timeframe, now)
    except InvalidRangeTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))

    jobs = {
        "overview": (build_overview_panel, range_token, now),
        "funnel": (build_funnel_panel, now),
        "blog": (build_blog_panel, now),
        "pipeline": (build_pipeline_panel, timeframe, now),
        "whatsapp": (build_whatsapp_panel, now),
    }
    results = await asyncio.gather(
        *(asyncio.to_thread(builder, *args) for builder, *args in jobs.values()),
        return_exceptions=True,
    )

    panels: Dict[str, Any] = {}
    for name, result in zip(jobs, results):
        if isinstance(result, Exception):
            logger.error("Panel '%s' failed: %s", name, result)
            panels[name] = {"panel": name, "status": "failed", "error": str(result), "data": None}
        else:
            panels[name] = result

    return {
        "generated_at": now.isoformat(),
        "range": range_token,
        "timeframe": timeframe,
        "panels": panels,
    }


@router.get("/snapshot")
async def latest_snapshot():
    """Latest snapshot written by `python -m insights.marketing_analyzer --sync`."""
    try:
        from insights.lib.supabase_client import get_latest_snapshot
        data = await asyncio.to_thread(get_latest_snapshot, SNAPSHOT_SOURCE)
        if not data:
            raise HTTPException(status_code=404, detail="No marketing snapshot stored yet")
        return data
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Snapshot query failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch snapshot")
