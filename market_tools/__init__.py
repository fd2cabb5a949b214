TOOL_REGISTRY = {
    "get-price-per-sq-ft": {
        "id": "get-price-per-sq-ft",
        "name": "Price Per Square Foot Feed",
        "description": (
            "Fetches the latest price feed for the price per square foot of property "
            "for sale in several cities across the US, with momentum, velocity and "
            "seasonal variation computed from a 2-year daily series."
        ),
        "parameters": {
            "location": "The location to get the price feed for (e.g. 'Austin', 'Denver')",
        },
        "returns": (
            "pricepersqft: the price per square foot for real estate property in the "
            "requested location, plus a statsGrid of earlier prices and trend stats"
        ),
        "pricing": {"price_per_use": 0, "currency": "USD"},
    },
    "get-rental-price-per-sq-ft": {
        "id": "get-rental-price-per-sq-ft",
        "name": "Rental Price Per Square Foot Feed",
        "description": (
            "Fetches the latest rental price feed for the price per square foot of "
            "property for rent in several cities across the US, with momentum, "
            "velocity and seasonal variation computed from a 2-year daily series."
        ),
        "parameters": {
            "location": "The location to get the rental price feed for",
        },
        "returns": (
            "rentalpricepersqft: the rental price per square foot for real estate "
            "property in the requested location, plus a statsGrid of trend stats"
        ),
        "pricing": {"price_per_use": 0, "currency": "USD"},
    },
}
