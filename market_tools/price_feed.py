"""
Price Per Square Foot tools
===========================
Two tools, identical apart from the series they read:

  1. get_price_per_sqft(store, client, location, agent_id)         : sale $/sqft
  2. get_rental_price_per_sqft(store, client, location, agent_id)  : rental $/sqft

Per call:
  outer cache   price_report:<location> / rental_price_report:<location>   (24h TTL)
    └─ on miss: resolve parcl id (parcl_id:<location>, 24h TTL)
                fetch 731 daily records from Parcl Labs
                reconcile against price_feed:<location> / rental_price_feed:<location>
                compute trend report → text + data + statsGrid ui

Success result:
  {tool_name, success, tool_result_id, timestamp, text, data, ui}

Failures are raised as PriceFeedError subclasses: the HTTP layer builds the
failure envelope. Every call, hit or miss, pass or fail, is recorded in the
in-memory invocation log.
"""

import os
import time
from datetime import datetime
from typing import Optional

from market_tools.cache import DEFAULT_TTL_SECONDS, CacheStore, with_cache
from market_tools.errors import PriceFeedError
from market_tools.feed import RENTAL_FIELD, SALE_FIELD, reconcile_feed
from market_tools.parcl_api import ParclClient, get_parcl_id
from market_tools.trend import compute_trend, format_number, stats_grid

TOOL_NAME = "price_feed"

# series field → (report key prefix, data key, noun used in text/descriptions)
_SERIES = {
    SALE_FIELD: ("price_report", "pricepersqft", "price"),
    RENTAL_FIELD: ("rental_price_report", "rentalpricepersqft", "rental price"),
}


def _report_ttl() -> int:
    return int(os.getenv("PRICE_FEED_CACHE_TTL", str(DEFAULT_TTL_SECONDS)))


# ---------------------------------------------------------------------------
# Invocation logging  (in-memory, bounded)
# ---------------------------------------------------------------------------

_invocation_log: list[dict] = []
_MAX_LOG_ENTRIES = 500


def _log_invocation(
    function: str,
    location: str,
    agent_id: str,
    duration_ms: float,
    success: bool,
    error: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "function": function,
        "query": location[:80],
        "agent_id": agent_id,
        "duration_ms": round(duration_ms, 1),
        "success": success,
    }
    if error:
        entry["error"] = error
    if message:
        entry["message"] = message
    _invocation_log.append(entry)
    if len(_invocation_log) > _MAX_LOG_ENTRIES:
        del _invocation_log[: len(_invocation_log) - _MAX_LOG_ENTRIES]


def get_invocation_log() -> list[dict]:
    """Returns a copy of the invocation log. Called by the /price-feed/log endpoint."""
    return list(_invocation_log)


def log_clear() -> None:
    _invocation_log.clear()


# ---------------------------------------------------------------------------
# Shared handler
# ---------------------------------------------------------------------------

async def _build_report(
    store: CacheStore,
    client: ParclClient,
    location: str,
    series: str,
) -> dict:
    """Producer for the outer cache: fetch → reconcile → trend → tool result."""
    _, data_key, noun = _SERIES[series]

    parcl_id = await get_parcl_id(store, client, location)
    fresh = await client.fetch_price_feed(parcl_id, series, location=location)
    feed, state = await reconcile_feed(store, f"{series}:{location}", fresh)
    report = compute_trend(feed)

    current = report["current_price"]
    slug = location.lower().replace(" ", "_")
    return {
        "tool_name": TOOL_NAME,
        "success": True,
        "tool_result_id": f"{series}_{slug}_{int(datetime.utcnow().timestamp())}",
        "timestamp": datetime.utcnow().isoformat(),
        "text": f"The current {noun} of property per square foot in {location} is {format_number(current)}",
        "data": {data_key: current},
        "ui": stats_grid(report, noun),
        "feed_state": state,
    }


async def _run_tool(
    function: str,
    store: CacheStore,
    client: ParclClient,
    location: str,
    agent_id: str,
    series: str,
) -> dict:
    location = location.strip()
    report_prefix, _, noun = _SERIES[series]
    _start = time.time()
    produced = False

    async def _producer() -> dict:
        nonlocal produced
        produced = True
        return await _build_report(store, client, location, series)

    try:
        result = await with_cache(store, f"{report_prefix}:{location}", _report_ttl(), _producer)
    except PriceFeedError as e:
        _log_invocation(function, location, agent_id, (time.time() - _start) * 1000, False, e.code, str(e))
        raise

    message = None
    if produced:
        message = f"Agent {agent_id} requested per sq.ft property {noun} for {location}."
    _log_invocation(function, location, agent_id, (time.time() - _start) * 1000, True, message=message)
    return result


# ---------------------------------------------------------------------------
# Public tool functions
# ---------------------------------------------------------------------------

async def get_price_per_sqft(
    store: CacheStore,
    client: ParclClient,
    location: str,
    agent_id: str = "anonymous",
) -> dict:
    """Latest sale price per square foot for a US location, with trend stats."""
    return await _run_tool("get_price_per_sqft", store, client, location, agent_id, SALE_FIELD)


async def get_rental_price_per_sqft(
    store: CacheStore,
    client: ParclClient,
    location: str,
    agent_id: str = "anonymous",
) -> dict:
    """Latest rental price per square foot for a US location, with trend stats."""
    return await _run_tool("get_rental_price_per_sqft", store, client, location, agent_id, RENTAL_FIELD)
