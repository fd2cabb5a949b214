"""
pytest conftest for the price feed test suite.

Three responsibilities:
1. Provides FakeRedis: an in-process stand-in for the redis.asyncio client
   that records every SET (key + expiry) so tests can assert on writes.
2. Provides a Parcl Labs fake built on httpx.MockTransport, so no test ever
   touches the network. It records every request path it serves.
3. Clears the in-memory invocation log between tests.

pytest-asyncio runs in STRICT mode (see pyproject.toml); every async test
carries @pytest.mark.asyncio.
"""

import os
import sys

# Make the repo root importable from any working directory
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest

from market_tools.cache import CacheStore
from market_tools.parcl_api import ParclClient


# ---------------------------------------------------------------------------
# Redis fake
# ---------------------------------------------------------------------------

class FakeRedis:
    """Implements the slice of redis.asyncio.Redis that CacheStore uses."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.writes: list[tuple[str, int | None]] = []
        self.closed = False

    async def ping(self):
        return True

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        self.writes.append((key, ex))
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return CacheStore(url="redis://fake:6379", client=fake_redis)


# ---------------------------------------------------------------------------
# Feed builders
# ---------------------------------------------------------------------------

def make_items(values: dict[int, float] | None = None, field: str = "price_feed",
               length: int = 731, default: float = 100.0) -> list[dict]:
    """731 daily records, most recent first; values overrides specific offsets."""
    values = values or {}
    return [
        {"date": f"day-{i}", field: values.get(i, default)}
        for i in range(length)
    ]


# ---------------------------------------------------------------------------
# Parcl Labs fake
# ---------------------------------------------------------------------------

class FakeParcl:
    """
    Serves /v1/search/markets and /v1/price_feed/... from in-memory data.
    markets: {location: [market dicts]}
    feeds:   {(parcl_id, series): [records] or a pre-encoded JSON body}
    status:  optional forced HTTP status for every request
    """

    def __init__(self):
        self.markets: dict[str, list[dict]] = {}
        self.feeds: dict[tuple[str, str], list[dict]] = {}
        self.status: int | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status, json={"detail": "forced"})

        path = request.url.path
        if path == "/v1/search/markets":
            query = request.url.params.get("query", "")
            return httpx.Response(200, json={"items": self.markets.get(query, [])})

        if path.startswith("/v1/price_feed/"):
            _, _, _, parcl_id, series = path.split("/")
            items = self.feeds.get((parcl_id, series))
            if items is None:
                return httpx.Response(404, json={"detail": "not found"})
            if isinstance(items, bytes):
                # Pre-encoded body, e.g. one carrying NaN literals.
                return httpx.Response(200, content=items, headers={"content-type": "application/json"})
            return httpx.Response(200, json={"items": items})

        return httpx.Response(404, json={"detail": "unknown path"})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def parcl():
    fake = FakeParcl()
    fake.markets["Austin"] = [
        {"parcl_id": "2900078", "name": "Austin", "state_abbreviation": "TX", "location_type": "CITY"},
        {"parcl_id": "2900999", "name": "Austin", "state_abbreviation": "MN", "location_type": "CITY"},
    ]
    return fake


@pytest.fixture
def parcl_client(parcl):
    return ParclClient(
        api_key="test-key",
        base_url="https://parcl.test",
        timeout=1.0,
        transport=httpx.MockTransport(parcl.handler),
    )


@pytest.fixture(autouse=True)
def clear_invocation_log():
    from market_tools.price_feed import log_clear
    log_clear()
    yield
    log_clear()
