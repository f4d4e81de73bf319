"""Ranking signals.

Every signal is an independent function of one candidate (and, for the
personalized ones, the viewer). The ranker combines them with the weight
table in :mod:`.weights`. Signals take an optional ``now`` so callers can
score a whole batch against a single clock reading.
"""

import math
import random
from datetime import datetime, timezone

from ..models import Candidate, Creator, Post, Surface, UserProfile, Work

# Freshness half-lives by surface, in hours.
FRESHNESS_HALF_LIVES = {
    Surface.WORKS: 168,   # 1 week
    Surface.POSTS: 24,    # 1 day
    Surface.PEOPLE: 336,  # 2 weeks
}

MAX_EXPLORATION_BOOST = 0.15

NEW_ITEM_BOOST = 0.2
NEW_ITEM_MAX_AGE_HOURS = 48
NEW_ITEM_MAX_VIEWS = 50

TRENDING_ENGAGEMENT_WEIGHT = 0.6
TRENDING_FRESHNESS_WEIGHT = 0.4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def age_hours(ts: datetime, now: datetime | None = None) -> float:
    """Hours elapsed since ``ts``; naive timestamps are taken as UTC."""
    now = now or utcnow()
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (now - ts).total_seconds() / 3600


def item_timestamp(item: Candidate) -> datetime | None:
    """The timestamp freshness is measured from."""
    if isinstance(item, Work):
        return item.published_at or item.created_at
    if isinstance(item, Creator):
        return item.created_at or item.last_active_at
    return item.created_at


def engagement_quality(item: Candidate, now: datetime | None = None) -> float:
    """Age-normalized, log-compressed engagement.

    Works count bookmarks over loves over likes and are normalized per day
    of age; posts weight comments over shares over likes and are normalized
    per hour. Creators use follower and work counts and ignore age.
    """
    if isinstance(item, Creator):
        raw = item.stats.followers_count * 2 + item.stats.works_count * 1
        return math.log1p(raw)

    ts = item_timestamp(item)
    hours = age_hours(ts, now) if ts is not None else 0.0

    if isinstance(item, Work):
        raw = item.likes_count * 1 + item.loves_count * 2 + item.bookmarks_count * 3
        age_factor = max(1.0, hours / 24)
    elif isinstance(item, Post):
        raw = item.likes_count * 1 + item.shares_count * 1.5 + item.comments_count * 2
        age_factor = max(1.0, hours)
    else:
        return 0.0

    return math.log1p(raw / age_factor)


def freshness_score(
    ts: datetime | None, half_life_hours: float, now: datetime | None = None
) -> float:
    """Exponential decay ``exp(-age / half_life)``; 0.5 when ``ts`` is unknown."""
    if ts is None:
        return 0.5
    return math.exp(-age_hours(ts, now) / half_life_hours)


def _lowered(values) -> set[str]:
    return {v.lower() for v in values if v}


def interest_match(item: Work | Post, viewer: UserProfile | None) -> float:
    """Genre, fandom and affinity-tag match between an item and the viewer."""
    if viewer is None:
        return 0.0

    score = 0.0
    genre = getattr(item, "genre", None)
    if genre and genre.lower() in _lowered(viewer.interests.genres):
        score += 0.4

    fandom = getattr(item, "fandom", None)
    if fandom and fandom.lower() in _lowered(viewer.interests.fandoms):
        score += 0.4

    affinity_tags = _lowered(a.tag for a in viewer.recommendation_data.tag_affinities)
    overlap = sum(1 for t in item.tags if t.lower() in affinity_tags)
    score += min(0.2, overlap * 0.05)
    return score


def interest_overlap(creator: Creator, viewer: UserProfile | None) -> float:
    """Shared genres and fandoms between a creator and the viewer."""
    if viewer is None:
        return 0.0

    viewer_genres = _lowered(viewer.interests.genres)
    viewer_fandoms = _lowered(viewer.interests.fandoms)

    genre_overlap = sum(1 for g in creator.interests.genres if g.lower() in viewer_genres)
    fandom_overlap = sum(1 for f in creator.interests.fandoms if f.lower() in viewer_fandoms)
    return min(0.5, genre_overlap * 0.15) + min(0.5, fandom_overlap * 0.15)


def social_proximity(
    author_id: str | None, viewer_id: str | None, follow_cache: set[str]
) -> float:
    """1.0 when the viewer follows the author, else 0."""
    if not author_id or not viewer_id or author_id == viewer_id:
        return 0.0
    return 1.0 if author_id in follow_cache else 0.0


async def social_proximity_uncached(store, author_id: str | None, viewer_id: str | None) -> float:
    """Per-candidate follow check, for callers without a follow set.

    Issues one store query per call.
    """
    if not author_id or not viewer_id or author_id == viewer_id:
        return 0.0
    return 1.0 if await store.is_following(viewer_id, author_id) else 0.0


def exploration_boost(max_boost: float = MAX_EXPLORATION_BOOST) -> float:
    return random.random() * max_boost


def new_item_boost(item: Work | Post, now: datetime | None = None) -> float:
    """Cold-start lift for items under 48h old with fewer than 50 views."""
    ts = item_timestamp(item)
    if ts is None:
        return 0.0
    if age_hours(ts, now) < NEW_ITEM_MAX_AGE_HOURS and item.views < NEW_ITEM_MAX_VIEWS:
        return NEW_ITEM_BOOST
    return 0.0


def trending_score(work: Work, now: datetime | None = None) -> float:
    return (
        TRENDING_ENGAGEMENT_WEIGHT * engagement_quality(work, now)
        + TRENDING_FRESHNESS_WEIGHT
        * freshness_score(item_timestamp(work), FRESHNESS_HALF_LIVES[Surface.WORKS], now)
    )
