"""
Supabase Client Helper for Lead Funnel Insights.
Provides connection, windowed table reads, lookups, and snapshot storage.

Usage:
    from insights.lib.supabase_client import get_client, fetch_window, store_snapshot

    rows = fetch_window("analytics_events", "occurred_at", start, end,
                        filters={"event_name": "pricing_view"})
    store_snapshot("marketing", metrics)
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from insights.lib.errors import ConfigError, DataFetchError
from insights.lib.logger import setup_logger

logger = setup_logger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = (
    os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
    or os.environ.get("SUPABASE_KEY", "")
)

# PostgREST caps responses at 1000 rows by default
PAGE_SIZE = int(os.environ.get("ANALYTICS_PAGE_SIZE", "1000"))

SNAPSHOTS_TABLE = "dashboard_snapshots"

_client = None


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    if not SUPABASE_URL or not SUPABASE_KEY:
        raise ConfigError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env"
        )

    from supabase import create_client
    _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    logger.info("Supabase client connected to %s", SUPABASE_URL)
    return _client


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)
def _execute(query):
    """Execute a prepared PostgREST request, retrying transport failures."""
    return query.execute()


def _fetch_page(query, offset: int, page_size: int) -> List[Dict]:
    return _execute(query.range(offset, offset + page_size - 1)).data or []


def fetch_window(
    table: str,
    ts_column: str,
    start: datetime,
    end: datetime,
    select: str = "*",
    filters: Dict[str, Any] = None,
    page_size: int = None,
) -> List[Dict]:
    """
    Read every row of a table whose timestamp column falls inside [start, end].

    Rows are ordered by the timestamp column, then by id so rows sharing a
    timestamp keep one position across pages, and read page by page until a
    short page comes back.

    Args:
        table: Table name.
        ts_column: Timestamp column used for the window (e.g. "occurred_at").
        start: Inclusive window start.
        end: Inclusive window end.
        select: Columns to select (default "*").
        filters: Dict of column=value equality filters.
        page_size: Rows per request (default PAGE_SIZE).

    Returns:
        List of row dicts in (timestamp, id) order.

    Raises:
        DataFetchError: If the client cannot be created or a request fails.
    """
    page_size = page_size or PAGE_SIZE
    rows: List[Dict] = []
    offset = 0

    try:
        client = get_client()
        while True:
            query = (
                client.table(table)
                .select(select)
                .gte(ts_column, start.isoformat())
                .lte(ts_column, end.isoformat())
            )
            for col, val in (filters or {}).items():
                query = query.eq(col, val)
            query = query.order(ts_column).order("id")

            page = _fetch_page(query, offset, page_size)
            rows.extend(page)
            if len(page) < page_size:
                break
            offset += page_size
    except Exception as e:
        logger.error("Supabase window read failed on %s: %s", table, e)
        raise DataFetchError(f"Failed to read {table}: {e}", source=table) from e

    logger.info(
        "Fetched %d rows from %s (%s between %s and %s)",
        len(rows), table, ts_column, start.isoformat(), end.isoformat(),
    )
    return rows


def fetch_lookup(
    table: str,
    select: str = "*",
    filters: Dict[str, Any] = None,
    order_by: str = None,
    limit: int = 500,
) -> List[Dict]:
    """
    Newest-first rows of a small lookup table (e.g. posts for slug -> title).

    Unlike fetch_window a failure is logged and yields [], since callers
    only use the rows for presentation.
    """
    try:
        query = get_client().table(table).select(select)
        for col, val in (filters or {}).items():
            query = query.eq(col, val)
        if order_by:
            query = query.order(order_by, desc=True)
        return _fetch_page(query, 0, limit)
    except Exception as e:
        logger.warning("Lookup read on %s failed, continuing without it: %s", table, e)
        return []


def store_snapshot(source: str, data: Dict) -> bool:
    """
    Insert a metrics snapshot into dashboard_snapshots.

    The row's generated_at is taken from data["generated_at"] when present so
    the stored row and the JSON file of the same run agree.

    Returns:
        True on success, False on failure.
    """
    row = {
        "source": source,
        "data": data,
        "generated_at": data.get("generated_at") or datetime.now(timezone.utc).isoformat(),
    }
    try:
        _execute(get_client().table(SNAPSHOTS_TABLE).insert(row))
    except Exception as e:
        logger.error("Snapshot insert for %s failed: %s", source, e)
        return False

    logger.info("Stored %s snapshot generated at %s", source, row["generated_at"])
    return True


def get_latest_snapshot(source: str) -> Optional[Dict]:
    """Newest stored snapshot data for a source; None if there is none or the read fails."""
    try:
        query = (
            get_client().table(SNAPSHOTS_TABLE)
            .select("data, generated_at")
            .eq("source", source)
            .order("generated_at", desc=True)
            .limit(1)
        )
        rows = _execute(query).data or []
    except Exception as e:
        logger.error("Snapshot read for %s failed: %s", source, e)
        return None
    return rows[0].get("data") if rows else None
