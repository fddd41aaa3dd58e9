"""
Category cache API routes.

- POST   /api/v1/store - Store channel (getSettings, saveSettings,
                         updateCacheEntry, deleteCacheEntry, clearCache)
- GET    /api/v1/cache - Cache epoch and entries
- DELETE /api/v1/cache - Clear the cache and issue a fresh epoch
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
import structlog

from inboxzen.api.dependencies import get_session
from inboxzen.models.api_models import StoreRequest, StoreResponse
from inboxzen.pipeline.session import SessionContext


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["cache"])


@router.post("/store", response_model=StoreResponse, response_model_exclude_none=True)
async def store_channel_endpoint(
    request: StoreRequest,
    session: SessionContext = Depends(get_session),
) -> StoreResponse:
    """
    Request/response channel over the persistent store.

    Failures are reported with success=False, never as HTTP errors.
    """
    return session.channel().handle(request)


@router.get("/cache")
async def cache_stats(session: SessionContext = Depends(get_session)) -> Dict[str, Any]:
    store = session.store
    epoch = store.epoch
    return {
        "count": store.count(),
        "version": epoch.version if epoch else None,
        "expected_version": store.expected_version,
        "expiry": epoch.expiry.isoformat() if epoch else None,
        "entries": {record.item_id: record.category.value for record in store.records()},
    }


@router.delete("/cache")
async def clear_cache(session: SessionContext = Depends(get_session)) -> Dict[str, Any]:
    session.store.clear()
    logger.info("cache_cleared_via_api")
    return {"success": True, "count": session.store.count()}
