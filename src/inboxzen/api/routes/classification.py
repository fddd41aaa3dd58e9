"""
Classification API routes.

- POST /api/v1/classify - Classify one conversation snippet
"""

from fastapi import APIRouter, Depends
import structlog

from inboxzen.api.dependencies import get_session
from inboxzen.models.api_models import ClassifyRequest, ClassifyResponse
from inboxzen.pipeline.session import SessionContext


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["classification"])


@router.post("/classify", response_model=ClassifyResponse)
async def classify_endpoint(
    request: ClassifyRequest,
    session: SessionContext = Depends(get_session),
) -> ClassifyResponse:
    """
    Classify a conversation snippet.

    Local keyword rules run first; the remote classifier is consulted only when
    they are inconclusive and the user enabled it. When item_id is given the
    result is written to the category cache.

    Returns:
        ClassifyResponse with the category and how it was obtained
    """
    outcome = await session.classifier.classify_detailed(
        request.text,
        request.sender,
        request.subject,
    )

    cached = False
    if request.item_id:
        session.store.set(request.item_id, outcome.category)
        cached = request.item_id in session.store

    logger.info(
        "classify_request_completed",
        item_id=request.item_id,
        category=outcome.category.value,
        source=outcome.source,
        latency_ms=outcome.latency_ms,
    )

    return ClassifyResponse(
        category=outcome.category,
        source=outcome.source,
        scores=outcome.scores,
        cached=cached,
    )
