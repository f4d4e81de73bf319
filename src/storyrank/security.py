import logging
import os
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from .lib.elasticsearch import STORE_ERRORS
from .models import UserProfile

API_KEY_HEADER_NAME = "X-API-Key"
USER_ID_HEADER_NAME = "X-User-Id"
SESSION_ID_HEADER_NAME = "X-Session-Id"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)

logger = logging.getLogger(__name__)


def get_api_key() -> str | None:
    return os.environ.get("API_KEY")


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str | None:
    expected_key = get_api_key()
    if not expected_key or api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def get_viewer(
    request: Request,
    user_id: Annotated[str | None, Header(alias=USER_ID_HEADER_NAME)] = None,
) -> UserProfile | None:
    """Resolve the viewer set by the gateway; unknown ids browse logged out."""
    if not user_id:
        return None
    try:
        viewer = await request.app.state.content.get_user(user_id)
    except STORE_ERRORS as exc:
        logger.exception("Failed to load viewer %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Content store request failed",
        ) from exc
    if viewer is None:
        logger.info("Unknown viewer %s; treating as logged out", user_id)
    return viewer


async def get_session_id(
    session_id: Annotated[str | None, Header(alias=SESSION_ID_HEADER_NAME)] = None,
) -> str | None:
    return session_id or None


Viewer = Annotated[UserProfile | None, Depends(get_viewer)]
SessionId = Annotated[str | None, Depends(get_session_id)]
