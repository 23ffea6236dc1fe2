"""
Store authentication: who may administer a store's commerce data.
"""

import secrets
from typing import Dict, Optional
from fastapi import HTTPException, status, Header
from stock_sync.deps import get_store_by_id


def can_administer_commerce(store: Dict, store_key: Optional[str]) -> bool:
    """
    Check whether a caller presenting store_key may administer the store.

    Args:
        store: Store config dict
        store_key: Key from the X-Store-Key header

    Returns:
        True if the key matches the store's configured API key
    """
    if not store_key:
        return False

    # Get API key from store config (support backward compatibility)
    store_api_key = store.get("api_key") or store.get("store_api_key") or store.get("storeKey")
    if not store_api_key:
        return False

    # Constant-time comparison to prevent timing attacks
    return secrets.compare_digest(store_key, store_api_key)


async def verify_store_key(store_id: str, store_key: Optional[str] = None) -> Dict:
    """
    Verify store_id and X-Store-Key header match store configuration.

    Args:
        store_id: Store ID from path
        store_key: Store API key from X-Store-Key header

    Returns:
        Store config dict

    Raises:
        HTTPException: If key is missing, invalid, or doesn't match store
    """
    if not store_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing X-Store-Key header",
            headers={"X-Error-Code": "missing_store_key"}
        )

    store = get_store_by_id(store_id)

    if not can_administer_commerce(store, store_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions.",
            headers={"X-Error-Code": "invalid_store_key"}
        )

    return store


async def get_verified_store(
    store_id: str,
    x_store_key: Optional[str] = Header(None, alias="X-Store-Key")
) -> Dict:
    """
    FastAPI dependency to verify store authentication.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(store: Dict = Depends(get_verified_store)):
            ...
    """
    return await verify_store_key(store_id, x_store_key)


async def get_owner_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> Optional[str]:
    """Caller's user id, used to remember their last job. Optional."""
    if x_user_id is None:
        return None
    owner_id = x_user_id.strip()
    return owner_id or None
