"""Diversity re-ranking: cap how many results share an author or a genre."""

from collections import defaultdict

from pydantic import BaseModel

from ..models import Candidate, Surface, author_of

UNKNOWN_GENRE = "unknown"


class DiversityCaps(BaseModel, frozen=True):
    """Per-author / per-genre caps; ``None`` means uncapped."""

    max_per_author: int | None = 2
    max_per_genre: int | None = 5


# Posts and people have no genre and would all share the "unknown" bucket,
# so they get no genre cap.
DIVERSITY_PRESETS = {
    Surface.WORKS: DiversityCaps(max_per_author=2, max_per_genre=5),
    Surface.POSTS: DiversityCaps(max_per_author=3, max_per_genre=None),
    Surface.PEOPLE: DiversityCaps(max_per_author=1, max_per_genre=None),
}


def genre_of(item: Candidate) -> str:
    return (getattr(item, "genre", None) or UNKNOWN_GENRE).lower()


def diversity_rerank(
    candidates: list[Candidate],
    *,
    max_per_author: int | None = 2,
    max_per_genre: int | None = 5,
    limit: int = 50,
) -> list[Candidate]:
    """Greedily keep score order while enforcing the caps.

    Walks ``candidates`` once (they must already be sorted by score) and
    accepts an item only if neither its author nor its genre has reached
    its cap. Stops after ``limit`` accepted items.
    """
    author_counts: dict[str, int] = defaultdict(int)
    genre_counts: dict[str, int] = defaultdict(int)
    result: list[Candidate] = []

    for item in candidates:
        if len(result) >= limit:
            break

        author = author_of(item)
        genre = genre_of(item)
        if max_per_author is not None and author_counts[author] >= max_per_author:
            continue
        if max_per_genre is not None and genre_counts[genre] >= max_per_genre:
            continue

        author_counts[author] += 1
        genre_counts[genre] += 1
        result.append(item)

    return result
