"""
Price feed snapshots + merge-on-change reconciliation
=====================================================
A FeedSnapshot wraps the raw Parcl Labs record list for one series:

  [{"date": "2026-10-18", "price_feed": 301.2, ...},   # day offset 0 (today)
   {"date": "2026-10-17", "price_feed": 300.9, ...},   # day offset 1
   ...]                                                 # >= 731 records

Records are kept verbatim so the cached payload is exactly what was fetched.
The value lives under a per-series field ("price_feed" or "rental_price_feed"),
which also keeps sale and rental snapshots from ever being compared.

reconcile_feed() decides what to persist for a freshly fetched snapshot:

  cold            : nothing usable cached     → store fresh as-is
  warm_unchanged  : cached head == fresh head → no write
  warm_changed    : heads differ              → prepend cached head, store merged

Feed writes use a plain SET (no expiry); the outer 24h response cache decides
how often reconciliation runs at all.
"""

import math
from typing import NamedTuple, Optional

from market_tools.errors import MalformedFeed

REQUIRED_LENGTH = 731  # offsets 0..730

# Value field per series kind; also the upstream path segment + cache key prefix.
SALE_FIELD = "price_feed"
RENTAL_FIELD = "rental_price_feed"

COLD = "cold"
WARM_UNCHANGED = "warm_unchanged"
WARM_CHANGED = "warm_changed"


class TimeSeriesPoint(NamedTuple):
    day_offset: int
    value: float


class FeedSnapshot:
    """Ordered daily series, index 0 = most recent."""

    def __init__(self, items: list[dict], field: str):
        self.items = list(items)
        self.field = field

    def __len__(self) -> int:
        return len(self.items)

    def value_at(self, offset: int) -> float:
        """Value at a day offset. Missing, non-numeric or non-finite values raise MalformedFeed."""
        if offset < 0 or offset >= len(self.items):
            raise MalformedFeed(
                f"Feed has {len(self.items)} entries; day offset {offset} is out of range."
            )
        record = self.items[offset]
        value = record.get(self.field) if isinstance(record, dict) else None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedFeed(f"Feed entry at day offset {offset} has no numeric '{self.field}'.")
        if not math.isfinite(value):
            raise MalformedFeed(f"Feed entry at day offset {offset} has a non-finite '{self.field}' ({value}).")
        return float(value)

    def point(self, offset: int) -> TimeSeriesPoint:
        return TimeSeriesPoint(offset, self.value_at(offset))

    def require_length(self, length: int = REQUIRED_LENGTH) -> "FeedSnapshot":
        """Rejects short feeds and any record without a finite value, before anything is cached."""
        if len(self.items) < length:
            raise MalformedFeed(
                f"Feed has {len(self.items)} entries; at least {length} are required."
            )
        for offset in range(len(self.items)):
            self.value_at(offset)
        return self

    def prepend(self, record: dict) -> "FeedSnapshot":
        return FeedSnapshot([record] + self.items, self.field)


def _usable_cached(cached, field: str) -> Optional[dict]:
    """The cached head record, or None if the payload can't be compared against this series."""
    if not isinstance(cached, list) or not cached:
        return None
    head = cached[0]
    if not isinstance(head, dict) or field not in head:
        return None
    value = head[field]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return head


async def reconcile_feed(store, key: str, fresh: FeedSnapshot) -> tuple[FeedSnapshot, str]:
    """
    Reconciles a freshly fetched snapshot against the one cached under key.

    Returns (snapshot to compute trends from, state name). In the warm_changed
    state the returned snapshot is one record longer and every offset lookup
    reads one day further back than the raw fetch.
    """
    cached_head = _usable_cached(await store.get(key), fresh.field)

    if cached_head is None:
        await store.set(key, fresh.items)
        return fresh, COLD

    if cached_head[fresh.field] == fresh.value_at(0):
        return fresh, WARM_UNCHANGED

    merged = fresh.prepend(cached_head)
    await store.set(key, merged.items)
    return merged, WARM_CHANGED
