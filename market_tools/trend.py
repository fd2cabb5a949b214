"""
Momentum / trend analytics for a price-per-sqft feed.

Reference offsets (days back from index 0):
  31 ≈ 1 month, 61 ≈ 2 months, 91 ≈ 3 months,
  182 ≈ 6 months, 365 ≈ 1 year, 730 ≈ 2 years

Every percentage is rounded to 3 decimals, half away from zero. Momentum and
velocity figures are derived from the already-rounded changes, then rounded
again. A zero reference price raises MalformedFeed rather than yielding inf/NaN.
"""

import json
from decimal import ROUND_HALF_UP, Decimal
from typing import TypedDict

from market_tools.errors import MalformedFeed
from market_tools.feed import FeedSnapshot

OFFSETS = {
    "1m": 31,
    "2m": 61,
    "3m": 91,
    "6m": 182,
    "1y": 365,
    "2y": 730,
}


class TrendReport(TypedDict):
    current_price: float
    price_1m: float
    price_6m: float
    price_1y: float
    price_2y: float
    change_1m: float
    change_2m: float
    change_3m: float
    change_6m: float
    change_1y: float
    change_2y: float
    short_term_momentum: float
    medium_term_momentum: float
    long_term_momentum: float
    velocity_monthly: float
    velocity_quarterly: float
    seasonal_variation: float


def round3(value: float) -> float:
    """Rounds to 3 decimals, half away from zero (ROUND_HALF_UP on the decimal repr)."""
    return float(Decimal(repr(value)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP))


def change_vs_offset(feed: FeedSnapshot, offset: int) -> float:
    """Percent change from the value `offset` days back to today."""
    current = feed.value_at(0)
    earlier = feed.value_at(offset)
    if earlier == 0:
        raise MalformedFeed(f"Reference price at day offset {offset} is zero.")
    return round3((current - earlier) / earlier * 100)


def compute_trend(feed: FeedSnapshot) -> TrendReport:
    changes = {name: change_vs_offset(feed, offset) for name, offset in OFFSETS.items()}

    return {
        "current_price": feed.value_at(0),
        "price_1m": feed.value_at(OFFSETS["1m"]),
        "price_6m": feed.value_at(OFFSETS["6m"]),
        "price_1y": feed.value_at(OFFSETS["1y"]),
        "price_2y": feed.value_at(OFFSETS["2y"]),
        "change_1m": changes["1m"],
        "change_2m": changes["2m"],
        "change_3m": changes["3m"],
        "change_6m": changes["6m"],
        "change_1y": changes["1y"],
        "change_2y": changes["2y"],
        "short_term_momentum": round3(changes["1m"] / 1),
        "medium_term_momentum": round3(changes["3m"] / 3),
        "long_term_momentum": round3(changes["1y"] / 12),
        "velocity_monthly": round3(changes["1m"] - changes["2m"]),
        "velocity_quarterly": round3(changes["3m"] - changes["6m"]),
        "seasonal_variation": changes["1y"],
    }


# ---------------------------------------------------------------------------
# statsGrid presentation
# ---------------------------------------------------------------------------

def format_number(value: float) -> str:
    """Prints a number the way the stats grid expects: 25.0 -> '25', 5.263 -> '5.263'."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _percent(value: float) -> str:
    return f"{format_number(value)}%"


def _plain(value: float):
    # Integral floats render without a trailing ".0" once JSON-encoded.
    return int(value) if float(value).is_integer() else value


def build_stats(report: TrendReport, noun: str = "price") -> list[dict]:
    """
    Ordered statsGrid entries for a trend report.
    noun is "price" for sale feeds and "rental price" for rental feeds.
    """
    earlier = [
        ("1 month ago", "price_1m", "change_1m"),
        ("6 months ago", "price_6m", "change_6m"),
        ("1 year ago", "price_1y", "change_1y"),
        ("2 years ago", "price_2y", "change_2y"),
    ]

    stats = [
        {
            "title": "Current Price",
            "value": _plain(report["current_price"]),
            "description": f"The current {noun} of property per square foot",
        }
    ]
    for label, price_key, change_key in earlier:
        stats.append({
            "title": f"Earlier Price ({label})",
            "value": _plain(report[price_key]),
            "change": _plain(report[change_key]),
            "description": f"The {noun} of property per square foot {label}",
        })

    stats.extend([
        {
            "title": "Short Term Momentum",
            "value": _percent(report["short_term_momentum"]),
            "description": f"Monthly rate of {noun} change (1 month)",
        },
        {
            "title": "Medium Term Momentum",
            "value": _percent(report["medium_term_momentum"]),
            "description": f"Average monthly rate of {noun} change over 3 months",
        },
        {
            "title": "Long Term Momentum",
            "value": _percent(report["long_term_momentum"]),
            "description": f"Average monthly rate of {noun} change over 1 year",
        },
        {
            "title": "Velocity Monthly",
            "value": _percent(report["velocity_monthly"]),
            "description": f"Monthly change in {noun} momentum",
        },
        {
            "title": "Velocity Quarterly",
            "value": _percent(report["velocity_quarterly"]),
            "description": f"Quarterly change in {noun} momentum",
        },
        {
            "title": "Seasonal Variation",
            "value": _plain(report["seasonal_variation"]),
            "description": f"Seasonal variation in {noun}",
        },
    ])
    return stats


def stats_grid(report: TrendReport, noun: str = "price") -> dict:
    return {"type": "statsGrid", "uiData": json.dumps({"stats": build_stats(report, noun)})}
