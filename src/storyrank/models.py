"""Domain models shared by the store adapters, the ranking pipeline and the API.

Stored documents use snake_case field names; HTTP bodies use camelCase.
``CamelModel`` accepts either spelling on input and serializes by alias in
API responses.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Mode(str, Enum):
    """Personalization regime chosen per request."""

    LOGGED_OUT = "logged_out"
    COLD_START = "cold_start"
    LOGGED_IN = "logged_in"


class Surface(str, Enum):
    """Content category being ranked."""

    WORKS = "works"
    POSTS = "posts"
    PEOPLE = "people"


class ItemType(str, Enum):
    WORK = "work"
    POST = "post"
    USER = "user"


class ImpressionSurface(str, Enum):
    """UI surface an impression was recorded on."""

    FOR_YOU = "for_you"
    TRENDING = "trending"
    NEW = "new"
    SEARCH = "search"
    FEED = "feed"
    DISCOVER = "discover"
    PROFILE = "profile"


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------

class Interests(CamelModel):
    genres: list[str] = Field(default_factory=list)
    fandoms: list[str] = Field(default_factory=list)


class TagAffinity(CamelModel):
    tag: str
    weight: float = 1.0


class AuthorAffinity(CamelModel):
    author_id: str
    weight: float = 1.0


class SeenWork(CamelModel):
    work_id: str
    seen_at: datetime


class RecommendationData(CamelModel):
    """Per-user state maintained by the feedback loop.

    Always present on a profile; a user who never engaged simply has empty
    lists and no ``computed_at``.
    """

    tag_affinities: list[TagAffinity] = Field(default_factory=list)
    author_affinities: list[AuthorAffinity] = Field(default_factory=list)
    recently_seen_works: list[SeenWork] = Field(default_factory=list)
    computed_at: datetime | None = None


class ContentFilters(CamelModel):
    """Sensitive-content categories the viewer has opted in to seeing."""

    mature: bool = False
    explicit: bool = False
    violence: bool = False
    self_harm: bool = False
    spoilers: bool = True


class UserProfile(CamelModel):
    """The slice of a user document the ranking engine consults."""

    id: str
    username: str | None = None
    interests: Interests = Field(default_factory=Interests)
    recommendation_data: RecommendationData = Field(default_factory=RecommendationData)
    blocked_users: list[str] = Field(default_factory=list)
    muted_users: list[str] = Field(default_factory=list)
    hidden_posts: list[str] = Field(default_factory=list)
    muted_words: list[str] = Field(default_factory=list)
    content_filters: ContentFilters = Field(default_factory=ContentFilters)

    @property
    def has_interests(self) -> bool:
        return bool(self.interests.genres or self.interests.fandoms)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

class RankedItem(CamelModel):
    """Fields common to every rankable item."""

    id: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    score: float | None = Field(
        None, description="Ranking score assigned by the scorer (if ranked)"
    )
    generator_name: str | None = Field(
        None, description="Name of the candidate generator that produced this item"
    )


class Work(RankedItem):
    item_type: Literal["work"] = "work"
    author_id: str
    title: str | None = None
    description: str | None = None
    genre: str | None = None
    fandom: str | None = None
    privacy: str = "Public"
    status: str = "published"
    published_at: datetime | None = None
    featured: bool = False
    featured_at: datetime | None = None
    likes_count: int = 0
    loves_count: int = 0
    bookmarks_count: int = 0
    comments_count: int = 0
    views: int = 0
    is_spoiler: bool = False
    is_nsfw: bool = False
    is_mature: bool = False
    is_explicit: bool = False
    has_violence: bool = False
    has_self_harm: bool = False


class Post(RankedItem):
    item_type: Literal["post"] = "post"
    author_id: str
    content: str | None = None
    likes_count: int = 0
    shares_count: int = 0
    comments_count: int = 0
    views: int = 0


class CreatorStats(CamelModel):
    followers_count: int = 0
    works_count: int = 0


class Creator(RankedItem):
    """A person recommended on the people surface; the item is the author."""

    item_type: Literal["user"] = "user"
    username: str | None = None
    display_name: str | None = None
    interests: Interests = Field(default_factory=Interests)
    stats: CreatorStats = Field(default_factory=CreatorStats)
    visibility: str = "public"
    last_active_at: datetime | None = None


Candidate = Work | Post | Creator

# Tagged union used when candidates of any surface are serialized together
FeedItem = Annotated[Candidate, Field(discriminator="item_type")]


def author_of(item: Candidate) -> str:
    """Author id of an item; a creator is its own author."""
    return getattr(item, "author_id", None) or item.id


# ---------------------------------------------------------------------------
# Impressions
# ---------------------------------------------------------------------------

class Impression(CamelModel):
    """A recorded exposure of an item, later enriched with engagement."""

    id: str | None = None
    user_id: str | None = None
    item_id: str
    item_type: ItemType
    surface: ImpressionSurface
    position: int = 0
    session_id: str | None = None
    viewed: bool = True
    clicked: bool = False
    clicked_at: datetime | None = None
    dwell_time_ms: int | None = None
    liked: bool = False
    bookmarked: bool = False
    followed: bool = False
    hidden: bool = False
    reported: bool = False
    algorithm_version: str = "v1"
    score: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
