"""Pure updates of a user's ``RecommendationData``.

These functions never touch the store: the profile store re-reads the
document, applies one of them, and writes the result back conditionally.
Each returns a new ``RecommendationData`` and leaves its input untouched,
so a conflicting write can simply be retried from a fresh read.
"""

from collections.abc import Iterable
from datetime import datetime

from ..models import AuthorAffinity, RecommendationData, SeenWork, TagAffinity

NEW_AFFINITY_WEIGHT = 1.0
AFFINITY_INCREMENT = 0.5
MAX_AFFINITY_WEIGHT = 10.0
MAX_AFFINITIES = 50
MAX_RECENTLY_SEEN = 100


def _bump(weight: float) -> float:
    return min(MAX_AFFINITY_WEIGHT, weight + AFFINITY_INCREMENT)


def _top(entries: list, limit: int = MAX_AFFINITIES) -> list:
    # sorted() is stable, so equal weights keep their insertion order
    return sorted(entries, key=lambda e: e.weight, reverse=True)[:limit]


def bump_tag_affinities(
    affinities: list[TagAffinity], tags: Iterable[str]
) -> list[TagAffinity]:
    """Add +0.5 (capped at 10) for known tags, start new ones at 1.0."""
    updated = [a.model_copy() for a in affinities]
    index = {a.tag: a for a in updated}
    for tag in tags:
        if tag in index:
            index[tag].weight = _bump(index[tag].weight)
        else:
            entry = TagAffinity(tag=tag, weight=NEW_AFFINITY_WEIGHT)
            index[tag] = entry
            updated.append(entry)
    return _top(updated)


def bump_author_affinity(
    affinities: list[AuthorAffinity], author_id: str
) -> list[AuthorAffinity]:
    updated = [a.model_copy() for a in affinities]
    for entry in updated:
        if entry.author_id == author_id:
            entry.weight = _bump(entry.weight)
            break
    else:
        updated.append(AuthorAffinity(author_id=author_id, weight=NEW_AFFINITY_WEIGHT))
    return _top(updated)


def fold_engagement(
    data: RecommendationData,
    *,
    tags: Iterable[str],
    author_id: str,
    now: datetime,
) -> RecommendationData:
    """Fold one positive engagement with a work into the affinity lists."""
    return data.model_copy(
        update={
            "tag_affinities": bump_tag_affinities(data.tag_affinities, tags),
            "author_affinities": bump_author_affinity(data.author_affinities, author_id),
            "computed_at": now,
        }
    )


def record_seen_work(
    data: RecommendationData, work_id: str, now: datetime
) -> RecommendationData:
    """Put ``work_id`` at the front of the recently seen list.

    An existing entry is refreshed and moved to the front rather than
    duplicated; the list keeps at most 100 entries.
    """
    seen = [SeenWork(work_id=work_id, seen_at=now)]
    seen.extend(s for s in data.recently_seen_works if s.work_id != work_id)
    return data.model_copy(update={"recently_seen_works": seen[:MAX_RECENTLY_SEEN]})
