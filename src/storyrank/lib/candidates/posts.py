"""Post candidate generators.

``followed_posts`` is the social bucket; ``engaging_posts`` and
``recent_posts`` supply out-of-network discovery. Personalized buckets
skip the viewer's own posts.
"""

from datetime import timedelta

from ..scoring import utcnow
from .base import CandidateGenerator, CandidateResult, GenerationContext

# Engaging posts look back further for signed-in viewers, whose feed also
# has a social bucket to keep it fresh.
ENGAGING_WINDOW_LOGGED_OUT = timedelta(days=1)
ENGAGING_WINDOW_PERSONAL = timedelta(days=3)


def _exclusions(context: GenerationContext) -> dict:
    return {
        "exclude_author": context.viewer_id,
        "exclude_ids": sorted(context.exclude_ids),
    }


class FollowedPostsGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "followed_posts"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        if not context.followee_ids:
            return self.result([])
        posts = await store.search_posts(
            limit=num_candidates,
            sort="newest",
            author_ids=sorted(context.followee_ids),
            exclude_ids=sorted(context.exclude_ids),
        )
        return self.result(posts)


class EngagingPostsGenerator(CandidateGenerator):
    """Most liked, then most discussed, recent posts."""

    @property
    def name(self) -> str:
        return "engaging_posts"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        window = ENGAGING_WINDOW_PERSONAL if context.viewer else ENGAGING_WINDOW_LOGGED_OUT
        posts = await store.search_posts(
            limit=num_candidates,
            sort="engaging",
            created_since=utcnow() - window,
            **_exclusions(context),
        )
        return self.result(posts)


class RecentPostsGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "recent_posts"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        posts = await store.search_posts(
            limit=num_candidates, sort="newest", **_exclusions(context)
        )
        return self.result(posts)
