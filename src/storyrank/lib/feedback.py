"""Exposure and engagement recording, and the affinity feedback loop.

Impression writes requested by the client (create, click, engage) are
synchronous: the caller needs the id back or a 404. Everything that
touches the viewer's profile, and the exposure log written for served
feeds, is best-effort: the ``remember_*``/``learn_*``/``record_feed_*``
methods log failures and never raise, so they can run as background
tasks after the response is sent.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import timedelta

from ..config import Settings, settings as default_settings
from ..models import Candidate, Impression, ImpressionSurface, ItemType
from .affinity import fold_engagement, record_seen_work
from .impressions import ImpressionNotFound
from .scoring import utcnow

logger = logging.getLogger(__name__)

# A click on an item reuses the viewer's impression of it from this window
CLICK_REUSE_WINDOW = timedelta(hours=24)

ENGAGEMENT_FIELDS = frozenset(
    {"dwell_time_ms", "liked", "bookmarked", "followed", "hidden", "reported"}
)

# Engagements that teach the profile something about the viewer's taste
AFFINITY_SIGNALS = ("liked", "bookmarked")


class FeedbackRecorder:
    def __init__(self, impressions, profiles, content, config: Settings = default_settings):
        self.impressions = impressions
        self.profiles = profiles
        self.content = content
        self.config = config

    # -- exposures -----------------------------------------------------------

    async def record(
        self,
        *,
        item_id: str,
        item_type: ItemType,
        surface: ImpressionSurface,
        user_id: str | None = None,
        position: int = 0,
        session_id: str | None = None,
        algorithm_version: str | None = None,
        score: float | None = None,
    ) -> Impression:
        return await self.impressions.create(
            Impression(
                user_id=user_id,
                item_id=item_id,
                item_type=item_type,
                surface=surface,
                position=position,
                session_id=session_id,
                algorithm_version=algorithm_version or self.config.algorithm_version,
                score=score,
            )
        )

    async def record_batch(
        self,
        entries: Iterable[Mapping],
        *,
        surface: ImpressionSurface,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> int:
        """Record several exposures at once.

        Each entry carries ``item_id``, ``item_type`` and optionally
        ``position``, which defaults to the entry's index in the batch.
        """
        batch = []
        for index, entry in enumerate(entries):
            position = entry.get("position")
            batch.append(
                Impression(
                    user_id=user_id,
                    item_id=entry["item_id"],
                    item_type=entry["item_type"],
                    surface=surface,
                    position=index if position is None else position,
                    session_id=session_id,
                    algorithm_version=self.config.algorithm_version,
                    score=entry.get("score"),
                )
            )
        return await self.impressions.create_many(batch)

    async def record_feed_exposures(
        self,
        items: list[Candidate],
        *,
        surface: ImpressionSurface,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        """Log what a served feed showed, in order. Never raises."""
        try:
            written = await self.record_batch(
                (
                    {"item_id": item.id, "item_type": ItemType(item.item_type), "score": item.score}
                    for item in items
                ),
                surface=surface,
                user_id=user_id,
                session_id=session_id,
            )
            logger.debug("Recorded %d feed exposures on %s", written, surface.value)
        except Exception:
            logger.exception("Failed to record feed exposures")

    # -- engagement ----------------------------------------------------------

    async def _load(self, impression_id: str) -> Impression:
        impression = await self.impressions.get(impression_id)
        if impression is None:
            raise ImpressionNotFound(impression_id)
        return impression

    async def click(self, impression_id: str) -> Impression:
        """Mark an impression clicked; raises ``ImpressionNotFound``."""
        impression = await self._load(impression_id)
        return await self._mark_clicked(impression)

    async def _mark_clicked(self, impression: Impression) -> Impression:
        clicked = impression.model_copy(update={"clicked": True, "clicked_at": utcnow()})
        await self.impressions.update(clicked, {"clicked", "clicked_at"})
        return clicked

    async def engage(self, impression_id: str, changes: Mapping) -> Impression:
        """Apply engagement fields to an impression; raises ``ImpressionNotFound``.

        Unknown keys are rejected before anything is read or written.
        """
        unknown = set(changes) - ENGAGEMENT_FIELDS
        if unknown:
            raise ValueError(f"Unknown engagement fields: {', '.join(sorted(unknown))}")

        impression = await self._load(impression_id)
        if not changes:
            return impression
        updated = impression.model_copy(update=dict(changes))
        await self.impressions.update(updated, set(changes))
        return updated

    async def click_by_item(
        self,
        *,
        item_id: str,
        item_type: ItemType,
        surface: ImpressionSurface = ImpressionSurface.PROFILE,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> Impression:
        """Record a click on an item the client has no impression id for.

        The viewer's impression of the item from the last 24 hours is
        reused when there is one; otherwise a new one is created.
        """
        impression = await self.impressions.find_recent(
            item_id=item_id,
            item_type=item_type,
            since=utcnow() - CLICK_REUSE_WINDOW,
            user_id=user_id,
            session_id=session_id,
        )
        if impression is None:
            impression = await self.record(
                item_id=item_id,
                item_type=item_type,
                surface=surface,
                user_id=user_id,
                session_id=session_id,
            )
        return await self._mark_clicked(impression)

    # -- profile feedback (best-effort) --------------------------------------

    async def remember_seen_work(self, user_id: str, work_id: str) -> None:
        now = utcnow()
        try:
            await self.profiles.update_recommendation_data(
                user_id, lambda data: record_seen_work(data, work_id, now)
            )
        except Exception:
            logger.exception("Failed to record seen work %s for %s", work_id, user_id)

    async def learn_from_engagement(self, user_id: str, work_id: str) -> None:
        """Fold a liked or bookmarked work's tags and author into the profile."""
        try:
            work = await self.content.get_work(work_id)
            if work is None:
                logger.info("Engaged work %s no longer exists; skipping affinities", work_id)
                return
            now = utcnow()
            await self.profiles.update_recommendation_data(
                user_id,
                lambda data: fold_engagement(
                    data, tags=work.tags, author_id=work.author_id, now=now
                ),
            )
        except Exception:
            logger.exception("Failed to update affinities for %s from work %s", user_id, work_id)


def teaches_affinity(impression: Impression, changes: Mapping) -> bool:
    """Whether an engagement should update the viewer's affinities."""
    return impression.item_type == ItemType.WORK and any(
        changes.get(signal) for signal in AFFINITY_SIGNALS
    )
