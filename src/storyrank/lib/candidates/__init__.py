"""Candidate generation framework for the ranking engine.

Provides named candidate generators (one per retrieval strategy) and the
per-(surface, mode) mixes that combine them.
"""

from .base import (
    CandidateGenerator,
    CandidateResult,
    GenerationContext,
    get_generator,
    list_generators,
    register_generator,
)
from .people import PopularCreatorsGenerator
from .posts import EngagingPostsGenerator, FollowedPostsGenerator, RecentPostsGenerator
from .works import (
    BookmarkTagsGenerator,
    FandomMatchGenerator,
    FeaturedWorksGenerator,
    FollowedAuthorsGenerator,
    FreshWorksGenerator,
    GenreMatchGenerator,
    TrendingWorksGenerator,
)

# Register built-in generators
for _gen in (
    TrendingWorksGenerator(),
    FreshWorksGenerator(),
    FeaturedWorksGenerator(),
    GenreMatchGenerator(),
    FandomMatchGenerator(),
    FollowedAuthorsGenerator(),
    BookmarkTagsGenerator(),
    FollowedPostsGenerator(),
    EngagingPostsGenerator(),
    RecentPostsGenerator(),
    PopularCreatorsGenerator(),
):
    register_generator(_gen)

from .mixer import MIXES, generate_candidates  # noqa: E402

__all__ = [
    "CandidateGenerator",
    "CandidateResult",
    "GenerationContext",
    "MIXES",
    "generate_candidates",
    "get_generator",
    "list_generators",
    "register_generator",
]
