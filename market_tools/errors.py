"""
Price feed error types
======================
Every failure raised by the price feed tools derives from PriceFeedError and
carries the error code + HTTP status used in the standard failure envelope:

  {tool_name, success: False, tool_result_id, error: {code, message}}

None of these are caught inside the tools: they propagate to the HTTP route,
which turns them into the envelope above.
"""


class PriceFeedError(Exception):
    code = "PRICE_FEED_ERROR"
    status_code = 500

    def to_error(self) -> dict:
        return {"code": self.code, "message": str(self)}


class CacheUnavailable(PriceFeedError):
    """Redis could not be reached (connect failure or dropped connection)."""

    code = "CACHE_UNAVAILABLE"
    status_code = 503


class NoMarketFound(PriceFeedError):
    """The upstream market search returned zero markets for a location."""

    code = "NO_MARKET_FOUND"
    status_code = 404

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"No markets found for the given location '{location}'.")


class UpstreamRequestFailed(PriceFeedError):
    """Network error or non-2xx response from the Parcl Labs API."""

    code = "UPSTREAM_REQUEST_FAILED"
    status_code = 502

    def __init__(self, message: str, location: str = "", series: str = "", endpoint: str = ""):
        self.location = location
        self.series = series
        self.endpoint = endpoint
        super().__init__(message)


class MalformedFeed(PriceFeedError):
    """Feed too short, a missing or non-finite value, or a zero reference price."""

    code = "MALFORMED_FEED"
    status_code = 502
