"""Feed router – ranked and chronological feeds per surface.

GET /feed
    Ranked (or newest-first) works, posts or people for the viewer.

GET /feed/trending
    Public works trending in a period.
"""

import logging
from enum import Enum
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from ..config import settings
from ..lib import ranker
from ..lib.elasticsearch import STORE_ERRORS
from ..lib.feedback import FeedbackRecorder
from ..models import FeedItem, ImpressionSurface, Surface, Work
from ..security import SessionId, Viewer, verify_api_key

router = APIRouter(tags=["feed"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)

Period = Literal["day", "week", "month"]


class FeedMode(str, Enum):
    RANKED = "ranked"
    CHRONOLOGICAL = "chronological"


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class FeedResponse(BaseModel):
    items: list[FeedItem]
    mode: str
    personalized: bool


class TrendingResponse(BaseModel):
    items: list[Work]
    period: str


def _store_failure() -> HTTPException:
    return HTTPException(status_code=502, detail="Content store request failed")


def recorder_for(request: Request) -> FeedbackRecorder:
    state = request.app.state
    return FeedbackRecorder(state.impressions, state.profiles, state.content, settings)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    request: Request,
    background_tasks: BackgroundTasks,
    viewer: Viewer,
    session_id: SessionId,
    surface: Surface = Query(Surface.POSTS),
    mode: FeedMode = Query(FeedMode.RANKED),
    limit: int | None = Query(None, ge=1, le=settings.feed_max_limit),
    period: Period = Query("week"),
) -> FeedResponse:
    """Return the viewer's feed for one surface.

    Ranked feeds report the personalization mode they were built in;
    chronological feeds list the newest items and are never personalized.
    """
    limit = limit or settings.feed_default_limit
    store = request.app.state.content

    if mode == FeedMode.CHRONOLOGICAL and surface == Surface.PEOPLE:
        raise HTTPException(
            status_code=422,
            detail="mode: chronological listing is only available for works and posts",
        )

    try:
        if mode == FeedMode.CHRONOLOGICAL:
            result = await ranker.chronological(
                store, viewer, surface, limit=limit, config=settings
            )
        else:
            result = await ranker.recommend(
                store, viewer, surface, limit=limit, period=period, config=settings
            )
    except STORE_ERRORS as exc:
        logger.exception("Failed to build %s feed", surface.value)
        raise _store_failure() from exc

    # Exposure log for served feeds, written after the response
    if settings.record_feed_impressions and result.items and (viewer or session_id):
        exposure_surface = (
            ImpressionSurface.FEED
            if mode == FeedMode.CHRONOLOGICAL
            else ImpressionSurface.FOR_YOU
        )
        background_tasks.add_task(
            recorder_for(request).record_feed_exposures,
            result.items,
            surface=exposure_surface,
            user_id=viewer.id if viewer else None,
            session_id=session_id,
        )

    return FeedResponse(items=result.items, mode=result.mode, personalized=result.personalized)


@router.get("/feed/trending", response_model=TrendingResponse)
async def get_trending(
    request: Request,
    viewer: Viewer,
    period: Period = Query("week"),
    limit: int | None = Query(None, ge=1, le=settings.feed_max_limit),
) -> TrendingResponse:
    limit = limit or settings.feed_default_limit
    try:
        works = await ranker.trending_works(
            request.app.state.content, viewer, period=period, limit=limit, config=settings
        )
    except STORE_ERRORS as exc:
        logger.exception("Failed to build trending feed")
        raise _store_failure() from exc
    return TrendingResponse(items=works, period=period)
