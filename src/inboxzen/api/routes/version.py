"""
Version information endpoint.
"""

from fastapi import APIRouter, Depends

from ...models.api_models import VersionInfo
from ...pipeline.session import SessionContext
from ...version import get_version_info
from ..dependencies import get_session

router = APIRouter()


@router.get("/version", response_model=VersionInfo)
async def get_version(session: SessionContext = Depends(get_session)) -> VersionInfo:
    """
    Component versions, with the cache version the session expects.
    """
    return get_version_info(cache_version=session.store.expected_version)
