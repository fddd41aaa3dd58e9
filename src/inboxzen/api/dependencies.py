"""
Request dependencies shared by the routers.
"""

from fastapi import Request
import structlog

from ..pipeline.session import SessionContext, open_session

logger = structlog.get_logger(__name__)


def get_session(request: Request) -> SessionContext:
    """
    Session of the running service.

    Opened by the lifespan handler; opened lazily when the app is served
    without lifespan events (e.g. an ASGI transport in tests).
    """
    session = getattr(request.app.state, "session", None)
    if session is None:
        logger.info("session_opened_lazily")
        session = open_session()
        request.app.state.session = session
    return session
