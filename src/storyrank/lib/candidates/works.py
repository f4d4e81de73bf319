"""Work candidate generators.

Logged-out retrieval mixes trending, fresh-with-traction and featured
works. Personalized retrieval pulls works matching the viewer's genres and
fandoms, works by followed authors, and works sharing tags with the
viewer's bookmarks; `trending_works` doubles as the infill pass.

Personalized generators never return the viewer's own works or works the
viewer already bookmarked.
"""

import logging
from datetime import timedelta

from ..scoring import utcnow
from .base import CandidateGenerator, CandidateResult, GenerationContext

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Window for the "fresh" bucket; items also need at least one like or bookmark.
FRESH_WINDOW = timedelta(days=30)

# How many recent bookmarks, and how many of their tags, seed tag similarity.
BOOKMARK_SEED_LIMIT = 10
BOOKMARK_TAG_LIMIT = 20


def personal_filters(context: GenerationContext) -> dict:
    """Exclusions shared by every personalized work query."""
    excluded = set(context.bookmarked_ids) | set(context.exclude_ids)
    return {
        "exclude_author": context.viewer_id,
        "exclude_ids": sorted(excluded),
    }


class TrendingWorksGenerator(CandidateGenerator):
    """Most viewed works published within the trending period."""

    @property
    def name(self) -> str:
        return "trending_works"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        filters = personal_filters(context) if context.viewer else {
            "exclude_ids": sorted(context.exclude_ids)
        }
        works = await store.search_works(
            limit=num_candidates,
            sort="trending",
            published_since=utcnow() - context.period_delta,
            **filters,
        )
        return self.result(works)


class FreshWorksGenerator(CandidateGenerator):
    """Newest works from the last 30 days that have some traction."""

    @property
    def name(self) -> str:
        return "fresh_works"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        works = await store.search_works(
            limit=num_candidates,
            sort="newest",
            published_since=utcnow() - FRESH_WINDOW,
            min_engagement=True,
        )
        return self.result(works)


class FeaturedWorksGenerator(CandidateGenerator):
    """Editorial picks, most recently featured first."""

    @property
    def name(self) -> str:
        return "featured_works"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        works = await store.search_works(
            limit=num_candidates, sort="featured", featured_only=True
        )
        return self.result(works)


class GenreMatchGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "genre_match"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        genres = context.viewer.interests.genres if context.viewer else []
        if not genres:
            return self.result([])
        works = await store.search_works(
            limit=num_candidates, genres=genres, **personal_filters(context)
        )
        return self.result(works)


class FandomMatchGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "fandom_match"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        fandoms = context.viewer.interests.fandoms if context.viewer else []
        if not fandoms:
            return self.result([])
        works = await store.search_works(
            limit=num_candidates, fandoms=fandoms, **personal_filters(context)
        )
        return self.result(works)


class FollowedAuthorsGenerator(CandidateGenerator):
    """Newest works by authors the viewer follows."""

    @property
    def name(self) -> str:
        return "followed_authors"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        if not context.followee_ids:
            return self.result([])
        works = await store.search_works(
            limit=num_candidates,
            author_ids=sorted(context.followee_ids),
            **personal_filters(context),
        )
        return self.result(works)


class BookmarkTagsGenerator(CandidateGenerator):
    """Works sharing tags with the viewer's most recent bookmarks.

    Pipeline:
        bookmarked ids → bookmarked works → tag set → works with those tags
    """

    @property
    def name(self) -> str:
        return "bookmark_tags"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        if not context.bookmarked_ids:
            return self.result([])

        seeds = await store.get_works(list(context.bookmarked_ids[:BOOKMARK_SEED_LIMIT]))
        tags: list[str] = []
        for work in seeds:
            for tag in work.tags:
                if tag not in tags:
                    tags.append(tag)

        if not tags:
            logger.info(
                "No tags on %d bookmarked works of user %s", len(seeds), context.viewer_id
            )
            return self.result([])

        works = await store.search_works(
            limit=num_candidates,
            tags=tags[:BOOKMARK_TAG_LIMIT],
            **personal_filters(context),
        )
        return self.result(works)
