"""Impressions router – exposure and engagement events from clients.

POST /impressions
POST /impressions/batch
POST /impressions/click-by-item
POST /impressions/{impression_id}/click
POST /impressions/{impression_id}/engage
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ConfigDict, Field

from ..lib.elasticsearch import STORE_ERRORS
from ..lib.feedback import teaches_affinity
from ..lib.impressions import ImpressionNotFound
from ..models import CamelModel, ImpressionSurface, ItemType
from ..security import SessionId, Viewer, verify_api_key
from .feed import recorder_for

router = APIRouter(tags=["impressions"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class ImpressionCreateRequest(CamelModel):
    item_id: str = Field(..., min_length=1)
    item_type: ItemType
    surface: ImpressionSurface
    position: int = Field(0, ge=0)
    session_id: str | None = None
    algorithm_version: str | None = None
    score: float | None = None


class BatchEntry(CamelModel):
    item_id: str = Field(..., min_length=1)
    item_type: ItemType
    position: int | None = Field(None, ge=0, description="Defaults to the entry's index")


class ImpressionBatchRequest(CamelModel):
    impressions: list[BatchEntry] = Field(..., min_length=1)
    surface: ImpressionSurface
    session_id: str | None = None


class EngageRequest(CamelModel):
    """Any subset of the engagement fields; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    dwell_time_ms: int | None = Field(None, ge=0)
    liked: bool | None = None
    bookmarked: bool | None = None
    followed: bool | None = None
    hidden: bool | None = None
    reported: bool | None = None


class ClickByItemRequest(CamelModel):
    item_id: str = Field(..., min_length=1)
    item_type: ItemType
    surface: ImpressionSurface = ImpressionSurface.PROFILE
    session_id: str | None = None


class ImpressionCreated(CamelModel):
    impression_id: str


class BatchRecorded(CamelModel):
    count: int


class Message(CamelModel):
    message: str


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Impression not found")


def _store_failure() -> HTTPException:
    return HTTPException(status_code=502, detail="Content store request failed")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/impressions", response_model=ImpressionCreated, status_code=201)
async def create_impression(
    request: Request,
    payload: ImpressionCreateRequest,
    viewer: Viewer,
    session_id: SessionId,
) -> ImpressionCreated:
    try:
        impression = await recorder_for(request).record(
            item_id=payload.item_id,
            item_type=payload.item_type,
            surface=payload.surface,
            user_id=viewer.id if viewer else None,
            position=payload.position,
            session_id=payload.session_id or session_id,
            algorithm_version=payload.algorithm_version,
            score=payload.score,
        )
    except STORE_ERRORS as exc:
        logger.exception("Failed to record impression of %s", payload.item_id)
        raise _store_failure() from exc
    return ImpressionCreated(impression_id=impression.id)


@router.post("/impressions/batch", response_model=BatchRecorded, status_code=201)
async def create_impressions_batch(
    request: Request,
    payload: ImpressionBatchRequest,
    viewer: Viewer,
    session_id: SessionId,
) -> BatchRecorded:
    try:
        count = await recorder_for(request).record_batch(
            (entry.model_dump() for entry in payload.impressions),
            surface=payload.surface,
            user_id=viewer.id if viewer else None,
            session_id=payload.session_id or session_id,
        )
    except STORE_ERRORS as exc:
        logger.exception("Failed to record %d impressions", len(payload.impressions))
        raise _store_failure() from exc
    return BatchRecorded(count=count)


@router.post("/impressions/click-by-item", response_model=ImpressionCreated)
async def click_by_item(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: ClickByItemRequest,
    viewer: Viewer,
    session_id: SessionId,
) -> ImpressionCreated:
    """Record a click when the client holds no impression id for the item."""
    recorder = recorder_for(request)
    try:
        impression = await recorder.click_by_item(
            item_id=payload.item_id,
            item_type=payload.item_type,
            surface=payload.surface,
            user_id=viewer.id if viewer else None,
            session_id=payload.session_id or session_id,
        )
    except STORE_ERRORS as exc:
        logger.exception("Failed to record click on %s", payload.item_id)
        raise _store_failure() from exc

    if viewer and payload.item_type == ItemType.WORK:
        background_tasks.add_task(recorder.remember_seen_work, viewer.id, payload.item_id)
    return ImpressionCreated(impression_id=impression.id)


@router.post("/impressions/{impression_id}/click", response_model=Message)
async def click_impression(
    request: Request,
    background_tasks: BackgroundTasks,
    impression_id: str,
    viewer: Viewer,
) -> Message:
    recorder = recorder_for(request)
    try:
        impression = await recorder.click(impression_id)
    except ImpressionNotFound as exc:
        raise _not_found() from exc
    except STORE_ERRORS as exc:
        logger.exception("Failed to record click on impression %s", impression_id)
        raise _store_failure() from exc

    if viewer and impression.item_type == ItemType.WORK:
        background_tasks.add_task(recorder.remember_seen_work, viewer.id, impression.item_id)
    return Message(message="Click recorded")


@router.post("/impressions/{impression_id}/engage", response_model=Message)
async def engage_impression(
    request: Request,
    background_tasks: BackgroundTasks,
    impression_id: str,
    payload: EngageRequest,
    viewer: Viewer,
) -> Message:
    changes = payload.model_dump(exclude_none=True)
    recorder = recorder_for(request)
    try:
        impression = await recorder.engage(impression_id, changes)
    except ImpressionNotFound as exc:
        raise _not_found() from exc
    except STORE_ERRORS as exc:
        logger.exception("Failed to record engagement on impression %s", impression_id)
        raise _store_failure() from exc

    if viewer and teaches_affinity(impression, changes):
        background_tasks.add_task(recorder.learn_from_engagement, viewer.id, impression.item_id)
    return Message(message="Engagement recorded")
