"""
FastAPI application entry point.
"""

import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from feedsync.api.v1.router import router as v1_router
from feedsync.config import get_settings
from feedsync.core.feed.service import build_woo_client
from feedsync.deps import close_redis, get_redis
from feedsync.schemas.feed import HealthResponse


logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    # Startup
    yield
    # Shutdown
    close_redis()


app = FastAPI(
    title="Feed Sync API",
    description="Feed generation and batch sync for WooCommerce catalog data",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(v1_router, prefix="/api/v1")


@app.get("/api/v1/health", response_model=HealthResponse, tags=["health"])
def health_check():
    """Health check endpoint."""
    return HealthResponse(ok=True)


@app.get("/api/v1/health/redis", tags=["health"])
def health_check_redis():
    """Check Redis connection health."""
    try:
        get_redis().ping()
        return {"ok": True, "redis": "connected"}
    except Exception as e:
        return {"ok": False, "redis": "disconnected", "error": str(e)}


@app.get("/api/v1/health/woo", tags=["health"])
def health_check_woo():
    """Check the WooCommerce item source connection."""
    client = build_woo_client(get_settings())
    if client is None:
        return {"ok": False, "woo": "not_configured"}
    try:
        success, message = client.test_connection()
    finally:
        client.close()
    return {"ok": success, "woo": "connected" if success else "error", "message": message}


@app.get("/", tags=["root"])
def root():
    """Root endpoint."""
    return {
        "message": "Feed Sync API",
        "version": "1.0.0",
        "docs": "/docs"
    }
