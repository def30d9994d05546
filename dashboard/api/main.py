"""
Lead Funnel Insights: API Server
===================================

JSON API over the marketing site's Supabase analytics tables.

Route groups:
  /api/health              - Health check
  /api/analytics/*         - Dashboard panels (overview, funnel, blog,
                             pipeline, whatsapp, dashboard, snapshot)
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Lead Funnel Insights...")

    # Supabase connection check
    try:
        from insights.lib.supabase_client import get_client
        get_client()
        logger.info("Supabase connected")
    except Exception as e:
        logger.warning("Supabase not available: %s", e)

    logger.info("Lead Funnel Insights ready")
    yield
    logger.info("Shutting down Lead Funnel Insights...")


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:5173,http://localhost:8001"
).split(",")

app = FastAPI(
    title="Lead Funnel Insights",
    version=VERSION,
    description="Traffic, funnel, blog and lead pipeline analytics for the marketing site",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ─── Include Routers ──────────────────────────────────────────

from dashboard.api.routers.analytics import router as analytics_router

app.include_router(analytics_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check with service status."""
    supabase_ok = False
    try:
        from insights.lib.supabase_client import get_client
        get_client()
        supabase_ok = True
    except Exception as e:
        logger.debug("Supabase unavailable for health check: %s", e)

    return {
        "status": "healthy",
        "service": "Lead Funnel Insights",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "supabase": supabase_ok,
        },
    }
