"""
FastAPI application entry point.
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from stock_sync.api.v1.router import router as v1_router
from stock_sync.config import get_settings
from stock_sync.deps import close_redis, get_redis
from stock_sync.schemas.common import HealthResponse

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    # Startup
    logger.info("Stock Sync API starting")
    yield
    # Shutdown
    await close_redis()


app = FastAPI(
    title="Stock Sync API",
    description="CSV-driven stock and price synchronization for WooCommerce stores",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(v1_router, prefix="/api/v1")


@app.get("/api/v1/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(ok=True)


@app.get("/api/v1/health/redis", tags=["health"])
async def health_check_redis():
    """Check Redis connection health."""
    try:
        redis = await get_redis()
        await redis.ping()
        return {"ok": True, "redis": "connected"}
    except Exception as e:
        logger.warning(f"Redis health check failed: {str(e)}")
        return {"ok": False, "redis": "disconnected", "error": str(e)}


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Stock Sync API",
        "version": "1.0.0",
        "docs": "/docs"
    }
