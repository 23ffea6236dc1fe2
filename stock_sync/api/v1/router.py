"""
Main API router for v1.
"""

from fastapi import APIRouter
from stock_sync.api.v1 import stock_sync

router = APIRouter()

router.include_router(stock_sync.router, prefix="/stores/{store_id}/stock-sync", tags=["stock-sync"])
