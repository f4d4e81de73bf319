"""The ranking pipeline.

    viewer → mode selection → candidate mix → policy gate → scoring
           → diversity re-rank → top-N

Everything here is request-scoped: the only state is what the store
returns for this request.
"""

import asyncio
import logging
from datetime import datetime

from pydantic import BaseModel

from ..config import Settings, settings as default_settings
from ..models import Candidate, FeedItem, Mode, Surface, UserProfile, Work, author_of
from .candidates import GenerationContext, generate_candidates
from .candidates.base import PERIODS
from .diversity import DIVERSITY_PRESETS, diversity_rerank
from .policy import apply_policy_gates, exclude_private_authors
from .scoring import (
    FRESHNESS_HALF_LIVES,
    engagement_quality,
    exploration_boost,
    freshness_score,
    interest_match,
    interest_overlap,
    item_timestamp,
    new_item_boost,
    social_proximity,
    social_proximity_uncached,
    trending_score,
    utcnow,
)
from .weights import weights_for

logger = logging.getLogger(__name__)

# Viewers following fewer accounts than this, with no declared interests,
# are treated as cold-start.
COLD_START_FOLLOW_THRESHOLD = 3

CHRONOLOGICAL = "chronological"


class Recommendation(BaseModel):
    items: list[FeedItem]
    mode: str
    personalized: bool


def select_mode(viewer: UserProfile | None, follow_count: int) -> Mode:
    if viewer is None:
        return Mode.LOGGED_OUT
    if not viewer.has_interests and follow_count < COLD_START_FOLLOW_THRESHOLD:
        return Mode.COLD_START
    return Mode.LOGGED_IN


async def build_context(
    store, viewer: UserProfile | None, surface: Surface, period: str = "week"
) -> GenerationContext:
    """Fetch the viewer's follow set (and bookmarks, for works) once."""
    if viewer is None:
        return GenerationContext(period=period)

    if surface == Surface.WORKS:
        followees, bookmarked = await asyncio.gather(
            store.followee_ids(viewer.id),
            store.bookmarked_work_ids(viewer.id),
        )
    else:
        followees, bookmarked = await store.followee_ids(viewer.id), []

    return GenerationContext(
        viewer=viewer,
        followee_ids=frozenset(followees),
        bookmarked_ids=tuple(bookmarked),
        period=period,
    )


async def score_candidates(
    candidates: list[Candidate],
    mode: Mode,
    surface: Surface,
    viewer: UserProfile | None = None,
    *,
    follow_cache: set[str] | frozenset[str] | None = None,
    store=None,
    fallback: bool = False,
    now: datetime | None = None,
) -> list[Candidate]:
    """Score every candidate and sort by score, highest first.

    ``follow_cache`` is the viewer's followee set. Without it, social
    proximity is checked against ``store`` once per candidate, which is
    much slower and logged as such. Ties keep their input order.
    """
    weights = weights_for(mode, surface, fallback=fallback)
    half_life = FRESHNESS_HALF_LIVES[surface]
    now = now or utcnow()

    if viewer is not None and weights.social and follow_cache is None:
        logger.warning(
            "Scoring %d candidates for %s without a follow cache; "
            "checking follows one by one",
            len(candidates),
            viewer.id,
        )

    scored: list[Candidate] = []
    for item in candidates:
        score = 0.0

        if weights.engagement:
            score += weights.engagement * engagement_quality(item, now)

        if weights.freshness:
            score += weights.freshness * freshness_score(item_timestamp(item), half_life, now)

        if weights.interest and viewer is not None and surface != Surface.PEOPLE:
            score += weights.interest * interest_match(item, viewer)

        if weights.overlap and viewer is not None and surface == Surface.PEOPLE:
            score += weights.overlap * interest_overlap(item, viewer)

        if weights.social and viewer is not None:
            author_id = author_of(item)
            if follow_cache is not None:
                proximity = social_proximity(author_id, viewer.id, follow_cache)
            else:
                proximity = await social_proximity_uncached(store, author_id, viewer.id)
            score += weights.social * proximity

        if weights.exploration:
            score += weights.exploration * exploration_boost()

        # Applies in every mode, outside the weight table
        if surface != Surface.PEOPLE:
            score += new_item_boost(item, now)

        scored.append(item.model_copy(update={"score": score}))

    scored.sort(key=lambda i: i.score, reverse=True)
    return scored


async def recommend(
    store,
    viewer: UserProfile | None,
    surface: Surface,
    *,
    limit: int = 20,
    period: str = "week",
    config: Settings = default_settings,
) -> Recommendation:
    """Produce the ranked, policy-filtered, diversified list for one request."""
    context = await build_context(store, viewer, surface, period)
    mode = select_mode(viewer, len(context.followee_ids))
    target = limit * config.candidate_multiplier

    if mode == Mode.LOGGED_OUT and surface == Surface.PEOPLE:
        # Logged-out people are listed by popularity, unscored
        creators = await generate_candidates(store, surface, mode, context, limit)
        return Recommendation(items=creators[:limit], mode=mode.value, personalized=False)

    candidates = await generate_candidates(store, surface, mode, context, target)
    candidates = apply_policy_gates(candidates, viewer)

    ranked = await score_candidates(
        candidates,
        mode,
        surface,
        viewer,
        follow_cache=context.followee_ids,
        store=store,
        fallback=bool(config.weights_fallback),
    )

    caps = DIVERSITY_PRESETS[surface]
    items = diversity_rerank(
        ranked,
        max_per_author=caps.max_per_author,
        max_per_genre=caps.max_per_genre,
        limit=limit,
    )
    logger.info(
        "Ranked %s for %s: mode=%s candidates=%d served=%d",
        surface.value,
        viewer.id if viewer else "anonymous",
        mode.value,
        len(candidates),
        len(items),
    )
    return Recommendation(items=items, mode=mode.value, personalized=mode != Mode.LOGGED_OUT)


async def chronological(
    store,
    viewer: UserProfile | None,
    surface: Surface,
    *,
    limit: int = 20,
    config: Settings = default_settings,
) -> Recommendation:
    """Newest works or posts, policy-filtered but otherwise unranked."""
    # Over-fetch so the policy gate does not leave the page short
    fetch = limit * config.candidate_multiplier
    if surface == Surface.WORKS:
        items: list[Candidate] = await store.search_works(limit=fetch, sort="newest")
    elif surface == Surface.POSTS:
        items = await store.search_posts(limit=fetch, sort="newest")
    else:
        raise ValueError(f"Chronological listing is not available for {surface.value}")

    items = apply_policy_gates(items, viewer)
    return Recommendation(items=items[:limit], mode=CHRONOLOGICAL, personalized=False)


async def trending_works(
    store,
    viewer: UserProfile | None,
    *,
    period: str = "week",
    limit: int = 20,
    config: Settings = default_settings,
) -> list[Work]:
    """Works published in ``period``, ranked by engagement and freshness.

    Works by private-profile authors are left out unless the viewer follows
    them.
    """
    now = utcnow()
    works, private_ids = await asyncio.gather(
        store.search_works(
            limit=limit * config.candidate_multiplier,
            sort="trending",
            published_since=now - PERIODS.get(period, PERIODS["week"]),
        ),
        store.private_author_ids(),
    )
    followees = await store.followee_ids(viewer.id) if viewer and private_ids else set()
    works = exclude_private_authors(works, private_ids, followees)
    works = apply_policy_gates(works, viewer)

    scored = [w.model_copy(update={"score": trending_score(w, now)}) for w in works]
    scored.sort(key=lambda w: w.score, reverse=True)

    caps = DIVERSITY_PRESETS[Surface.WORKS]
    return diversity_rerank(
        scored,
        max_per_author=caps.max_per_author,
        max_per_genre=caps.max_per_genre,
        limit=limit,
    )
