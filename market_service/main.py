import os
from contextlib import asynccontextmanager
from datetime import datetime

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

load_dotenv()

from market_tools import TOOL_REGISTRY
from market_tools.cache import CacheStore
from market_tools.errors import PriceFeedError
from market_tools.parcl_api import ParclClient
from market_tools.price_feed import (
    TOOL_NAME,
    get_invocation_log,
    get_price_per_sqft,
    get_rental_price_per_sqft,
)

SERVICE_METADATA = {
    "title": "Real Estate Market Service",
    "description": (
        "A service to extract real estate market data (sale and rental price per "
        "square foot with trend analytics) for cities across the US"
    ),
    "version": "1.0.0",
    "author": "adlonymous",
    "tags": ["real estate", "property"],
}

_HANDLERS = {
    "get-price-per-sq-ft": get_price_per_sqft,
    "get-rental-price-per-sq-ft": get_rental_price_per_sqft,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One shared cache store + upstream client for the whole process.
    app.state.cache = CacheStore()
    app.state.parcl = ParclClient()
    yield
    await app.state.cache.close()


app = FastAPI(
    title=SERVICE_METADATA["title"],
    description=SERVICE_METADATA["description"],
    version=SERVICE_METADATA["version"],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class ToolRequest(BaseModel):
    location: str
    # Identity of the calling agent; only used for the invocation log.
    agent_id: str = "anonymous"


@app.get("/")
async def root():
    return {**SERVICE_METADATA, "tools": list(TOOL_REGISTRY)}


@app.get("/tools")
async def list_tools():
    return {"tools": list(TOOL_REGISTRY.values())}


@app.post("/tools/{tool_id}")
async def invoke_tool(tool_id: str, req: ToolRequest, request: Request):
    handler = _HANDLERS.get(tool_id)
    if handler is None:
        return JSONResponse(
            status_code=404,
            content={"error": f"Unknown tool '{tool_id}'. Available: {', '.join(_HANDLERS)}."},
        )

    try:
        return await handler(
            request.app.state.cache,
            request.app.state.parcl,
            req.location,
            agent_id=req.agent_id,
        )
    except PriceFeedError as e:
        slug = req.location.strip().lower().replace(" ", "_")
        return JSONResponse(
            status_code=e.status_code,
            content={
                "tool_name": TOOL_NAME,
                "success": False,
                "tool_result_id": f"{tool_id}_{slug}_{int(datetime.utcnow().timestamp())}",
                "error": e.to_error(),
            },
        )


@app.get("/health")
async def health(request: Request):
    redis_ok = await request.app.state.cache.ping()
    return {
        "status": "ok",
        "redis_reachable": redis_ok,
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/price-feed/log")
async def price_feed_log():
    """
    Returns the in-memory price feed tool invocation log.
    Each entry: timestamp, function, query (truncated), agent_id, duration_ms,
    success, and the error code on failure.
    """
    log = get_invocation_log()
    total = len(log)
    successes = sum(1 for e in log if e["success"])
    return {
        "total_invocations": total,
        "success_count": successes,
        "failure_count": total - successes,
        "entries": log[-50:],  # last 50 only
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "2022")))
