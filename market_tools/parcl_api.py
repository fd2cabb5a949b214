"""
Parcl Labs API integration: market search + daily price feeds
=============================================================
Base: https://api.parcllabs.com  (override with PARCL_BASE_URL)
Auth: raw PARCL_API_KEY in the Authorization header.

Endpoints used:
  GET /v1/search/markets?query=<location>                       : market search
  GET /v1/price_feed/<parcl_id>/price_feed?limit=731            : sale $/sqft feed
  GET /v1/price_feed/<parcl_id>/rental_price_feed?limit=731     : rental $/sqft feed

Both responses wrap their records in an "items" list; feed items are ordered
most-recent first.

get_parcl_id(store, client, location) resolves a location to the first market
returned by search, cached under parcl_id:<location> for 24h. No fuzzy matching,
no ranking beyond "first result wins".
"""

import os
from typing import Optional, TypedDict

import httpx

from market_tools.cache import DEFAULT_TTL_SECONDS, with_cache
from market_tools.errors import NoMarketFound, UpstreamRequestFailed
from market_tools.feed import REQUIRED_LENGTH, FeedSnapshot

_PARCL_BASE = "https://api.parcllabs.com"
_REQUEST_TIMEOUT = 10.0  # seconds


class ParclMarket(TypedDict, total=False):
    parcl_id: str
    country: str
    geoid: str
    state_fips_code: str
    name: str
    state_abbreviation: str
    region: str
    location_type: str
    total_population: int
    median_income: int
    parcl_exchange_market: int
    pricefeed_market: int
    case_shiller_10_market: int
    case_shiller_20_market: int


class ParclClient:
    """Thin async client for the two Parcl Labs endpoints the price tools need."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("PARCL_API_KEY", "")
        self.base_url = (base_url or os.getenv("PARCL_BASE_URL", _PARCL_BASE)).rstrip("/")
        self.timeout = timeout or float(os.getenv("PARCL_REQUEST_TIMEOUT", str(_REQUEST_TIMEOUT)))
        self._transport = transport

    def _headers(self) -> dict:
        return {"accept": "application/json", "Authorization": self.api_key}

    async def _get_items(self, path: str, params: dict, location: str = "", series: str = "") -> list:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url, params=params, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            raise UpstreamRequestFailed(
                f"Parcl Labs timed out on {path} (location='{location}', series='{series or 'search'}').",
                location=location, series=series, endpoint=path,
            ) from e
        except httpx.HTTPStatusError as e:
            raise UpstreamRequestFailed(
                f"Parcl Labs returned HTTP {e.response.status_code} on {path} "
                f"(location='{location}', series='{series or 'search'}').",
                location=location, series=series, endpoint=path,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamRequestFailed(
                f"Parcl Labs request to {path} failed (location='{location}', "
                f"series='{series or 'search'}'): {e}",
                location=location, series=series, endpoint=path,
            ) from e

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise UpstreamRequestFailed(
                f"Parcl Labs response from {path} has no 'items' list.",
                location=location, series=series, endpoint=path,
            )
        return items

    async def search_markets(self, location: str) -> list[ParclMarket]:
        return await self._get_items("/v1/search/markets", {"query": location}, location=location)

    async def fetch_price_feed(
        self,
        parcl_id: str,
        series: str,
        location: str = "",
        limit: int = REQUIRED_LENGTH,
    ) -> FeedSnapshot:
        """
        Fetches a sale ("price_feed") or rental ("rental_price_feed") series.
        Raises MalformedFeed when fewer than 731 records come back.
        """
        items = await self._get_items(
            f"/v1/price_feed/{parcl_id}/{series}",
            {"limit": limit},
            location=location,
            series=series,
        )
        return FeedSnapshot(items, series).require_length()


async def get_parcl_id(store, client: ParclClient, location: str) -> str:
    """Parcl market id for a location: first search hit, cached for 24h."""

    async def _search() -> str:
        markets = await client.search_markets(location)
        if not markets:
            raise NoMarketFound(location)
        first = markets[0]
        if not isinstance(first, dict) or not first.get("parcl_id"):
            raise UpstreamRequestFailed(
                f"Parcl Labs search for '{location}' returned a market without a parcl_id.",
                location=location, endpoint="/v1/search/markets",
            )
        return first["parcl_id"]

    return await with_cache(store, f"parcl_id:{location}", DEFAULT_TTL_SECONDS, _search)
