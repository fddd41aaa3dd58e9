"""
Settings surface API routes.

- GET /api/v1/settings - Current preferences (the API key is never echoed)
- PUT /api/v1/settings - Update API key and/or AI opt-in
"""

from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from inboxzen.api.dependencies import get_session
from inboxzen.models.api_models import PreferencesResponse, PreferencesUpdate
from inboxzen.pipeline.session import SessionContext
from inboxzen.storage.kv_store import StoreError


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["settings"])


def _to_response(session: SessionContext) -> PreferencesResponse:
    prefs = session.preferences
    return PreferencesResponse(
        api_key_set=bool(prefs.api_key),
        use_ai=prefs.use_ai,
        categories=list(prefs.categories),
        cache_count=session.store.count(),
    )


@router.get("/settings", response_model=PreferencesResponse)
async def get_settings(session: SessionContext = Depends(get_session)) -> PreferencesResponse:
    return _to_response(session)


@router.put("/settings", response_model=PreferencesResponse)
async def update_settings(
    update: PreferencesUpdate,
    session: SessionContext = Depends(get_session),
) -> PreferencesResponse:
    """
    Save preferences and rebuild the session's classifier from them.

    Raises:
        HTTPException: 503 if the store cannot be written
    """
    try:
        prefs = session.preferences_store.save(api_key=update.api_key, use_ai=update.use_ai)
    except StoreError as e:
        logger.error("settings_save_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Error saving settings: {e}",
        )

    session.apply_preferences(prefs)
    return _to_response(session)
