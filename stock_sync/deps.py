"""
Dependency injection for FastAPI.
"""

from typing import AsyncIterator, Dict, Optional
import redis.asyncio as aioredis
from fastapi import HTTPException, status

from stock_sync.config import get_settings, get_all_stores, generate_store_id
from stock_sync.core.catalog import CatalogStore, WooCatalogStore
from stock_sync.core.sync.job_store import JobStore, OwnerIndex, PriceAdjustSettingsStore
from stock_sync.core.woo_client import WooClient


_redis_client: Optional[aioredis.Redis] = None


async def get_redis() -> aioredis.Redis:
    """Get Redis client (singleton) with lazy connection."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=1.0,
            socket_timeout=3.0,
            retry_on_timeout=True,
            health_check_interval=30,
            socket_keepalive=True
        )
    return _redis_client


async def close_redis():
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def get_store_by_id(store_id: str) -> Dict:
    """
    Get store configuration by store_id.

    Args:
        store_id: Store ID (slug).

    Returns:
        Store config dict.

    Raises:
        HTTPException: If store not found.
    """
    stores = get_all_stores()

    for store_name, store_config in stores.items():
        if generate_store_id(store_name) == store_id:
            return {
                "name": store_name,
                "id": store_id,
                **store_config
            }

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Store '{store_id}' not found"
    )


def get_woo_client_for_store(store_id: str) -> WooClient:
    """
    Create WooClient for a store.

    Args:
        store_id: Store ID.

    Returns:
        WooClient instance.

    Raises:
        HTTPException: If store not found or missing credentials.
    """
    store = get_store_by_id(store_id)

    store_url = store.get("store_url")
    consumer_key = store.get("consumer_key")
    consumer_secret = store.get("consumer_secret")
    wp_username = store.get("wp_username")
    wp_app_password = store.get("wp_app_password")

    if not store_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Store URL not configured"
        )

    # Prefer WooCommerce API credentials
    if consumer_key and consumer_secret:
        return WooClient(
            store_url=store_url,
            consumer_key=consumer_key,
            consumer_secret=consumer_secret
        )

    # Fallback to WP application password
    if wp_username and wp_app_password:
        return WooClient(
            store_url=store_url,
            wp_username=wp_username,
            wp_app_password=wp_app_password
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Store credentials not configured (need consumer_key/secret or wp_username/app_password)"
    )


def get_catalog_for_store(store_id: str) -> CatalogStore:
    """Create the WooCommerce-backed catalog store for a store."""
    return WooCatalogStore(get_woo_client_for_store(store_id))


async def get_job_store() -> JobStore:
    """Job store on the shared Redis client."""
    redis = await get_redis()
    settings = get_settings()
    return JobStore(
        redis,
        ttl_seconds=settings.job_ttl_seconds,
        lock_ttl_seconds=settings.job_lock_ttl_seconds
    )


async def get_owner_index() -> OwnerIndex:
    """Owner last-job index on the shared Redis client."""
    redis = await get_redis()
    return OwnerIndex(redis)


async def get_price_adjust_store(store_id: str) -> PriceAdjustSettingsStore:
    """Saved price-adjust defaults for a store."""
    redis = await get_redis()
    return PriceAdjustSettingsStore(redis, store_id)


async def get_catalog(store_id: str) -> AsyncIterator[CatalogStore]:
    """Request-scoped catalog store; closes its HTTP client afterwards."""
    catalog = get_catalog_for_store(store_id)
    try:
        yield catalog
    finally:
        await catalog.close()
