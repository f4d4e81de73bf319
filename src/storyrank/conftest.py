"""Shared fixtures: an in-memory stand-in for the Elasticsearch-backed stores.

``FakeStore`` answers the same calls as ``ContentStore``, ``ProfileStore``
and ``ImpressionStore`` so one instance can be attached to ``app.state``
in all three roles.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

from .lib.impressions import ImpressionNotFound
from .main import app
from .models import Creator, CreatorStats, Impression, Interests, Post, UserProfile, Work

HEADERS = {"X-API-Key": "testkey"}


def hours_ago(hours: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def make_work(work_id: str, author_id: str = "author-1", **fields) -> Work:
    fields.setdefault("published_at", hours_ago(72))
    fields.setdefault("created_at", fields["published_at"])
    fields.setdefault("views", 100)
    return Work(id=work_id, author_id=author_id, **fields)


def make_post(post_id: str, author_id: str = "author-1", **fields) -> Post:
    fields.setdefault("created_at", hours_ago(6))
    fields.setdefault("views", 100)
    return Post(id=post_id, author_id=author_id, **fields)


def make_creator(user_id: str, followers: int = 10, works: int = 1, **fields) -> Creator:
    fields.setdefault("created_at", hours_ago(24 * 30))
    return Creator(
        id=user_id,
        username=user_id,
        stats=CreatorStats(followers_count=followers, works_count=works),
        **fields,
    )


def make_user(user_id: str, genres=(), fandoms=(), **fields) -> UserProfile:
    return UserProfile(
        id=user_id,
        username=user_id,
        interests=Interests(genres=list(genres), fandoms=list(fandoms)),
        **fields,
    )


def _ts(value: datetime | None) -> datetime:
    return value or datetime.min.replace(tzinfo=timezone.utc)


def _since(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class FakeStore:
    """In-memory content, profile and impression store."""

    def __init__(self):
        self.works: dict[str, Work] = {}
        self.posts: dict[str, Post] = {}
        self.creators: dict[str, Creator] = {}
        self.users: dict[str, UserProfile] = {}
        self.follows: set[tuple[str, str]] = set()
        self.bookmarks: dict[str, list[str]] = {}
        self.impressions: dict[str, Impression] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, dict]] = []
        self.follow_checks = 0

    # -- setup helpers -------------------------------------------------------

    def add(self, *items):
        for item in items:
            if isinstance(item, Work):
                self.works[item.id] = item
            elif isinstance(item, Post):
                self.posts[item.id] = item
            elif isinstance(item, Creator):
                self.creators[item.id] = item
            elif isinstance(item, UserProfile):
                self.users[item.id] = item
        return self

    def follow(self, follower_id: str, *followee_ids: str):
        for followee_id in followee_ids:
            self.follows.add((follower_id, followee_id))
        return self

    def _call(self, name: str, **kwargs):
        self.calls.append((name, kwargs))
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    # -- content -------------------------------------------------------------

    async def search_works(
        self,
        *,
        limit,
        sort="newest",
        genres=None,
        fandoms=None,
        author_ids=None,
        tags=None,
        published_since=None,
        min_engagement=False,
        featured_only=False,
        exclude_author=None,
        exclude_ids=(),
    ):
        self._call("search_works", sort=sort, genres=genres, fandoms=fandoms)
        since = _since(published_since)
        genres = {g.lower() for g in genres or ()}
        fandoms = {f.lower() for f in fandoms or ()}
        works = [
            w
            for w in self.works.values()
            if w.privacy == "Public"
            and w.status == "published"
            and (not genres or (w.genre or "").lower() in genres)
            and (not fandoms or (w.fandom or "").lower() in fandoms)
            and (not author_ids or w.author_id in author_ids)
            and (not tags or set(w.tags) & set(tags))
            and (since is None or _ts(w.published_at) >= since)
            and (not min_engagement or w.likes_count >= 1 or w.bookmarks_count >= 1)
            and (not featured_only or w.featured)
            and w.author_id != exclude_author
            and w.id not in exclude_ids
        ]
        if sort == "trending":
            works.sort(key=lambda w: (w.views, w.likes_count), reverse=True)
        elif sort == "featured":
            works.sort(key=lambda w: _ts(w.featured_at), reverse=True)
        elif sort == "popular":
            works.sort(key=lambda w: w.views, reverse=True)
        else:
            works.sort(key=lambda w: _ts(w.published_at), reverse=True)
        return works[:limit]

    async def get_works(self, work_ids):
        return [self.works[i] for i in work_ids if i in self.works]

    async def get_work(self, work_id):
        self._call("get_work", work_id=work_id)
        return self.works.get(work_id)

    async def search_posts(
        self,
        *,
        limit,
        sort="newest",
        author_ids=None,
        created_since=None,
        exclude_author=None,
        exclude_ids=(),
    ):
        self._call("search_posts", sort=sort, author_ids=author_ids)
        since = _since(created_since)
        posts = [
            p
            for p in self.posts.values()
            if (not author_ids or p.author_id in author_ids)
            and (since is None or _ts(p.created_at) >= since)
            and p.author_id != exclude_author
            and p.id not in exclude_ids
        ]
        if sort == "engaging":
            posts.sort(key=lambda p: (p.likes_count, p.comments_count), reverse=True)
        else:
            posts.sort(key=lambda p: _ts(p.created_at), reverse=True)
        return posts[:limit]

    async def search_creators(self, *, limit, exclude_ids=()):
        self._call("search_creators", exclude_ids=list(exclude_ids))
        creators = [
            c
            for c in self.creators.values()
            if c.stats.works_count >= 1
            and c.visibility != "invisible"
            and c.id not in exclude_ids
        ]
        creators.sort(key=lambda c: c.stats.followers_count, reverse=True)
        return creators[:limit]

    async def private_author_ids(self):
        self._call("private_author_ids")
        return {c.id for c in self.creators.values() if c.visibility == "private"}

    async def get_user(self, user_id):
        self._call("get_user", user_id=user_id)
        return self.users.get(user_id)

    async def followee_ids(self, user_id):
        self._call("followee_ids", user_id=user_id)
        return {followee for follower, followee in self.follows if follower == user_id}

    async def is_following(self, follower_id, followee_id):
        self.follow_checks += 1
        return (follower_id, followee_id) in self.follows

    async def bookmarked_work_ids(self, user_id):
        return list(self.bookmarks.get(user_id, []))

    # -- profiles ------------------------------------------------------------

    async def update_recommendation_data(self, user_id, mutate):
        self._call("update_recommendation_data", user_id=user_id)
        user = self.users.get(user_id)
        if user is None:
            return False
        self.users[user_id] = user.model_copy(
            update={"recommendation_data": mutate(user.recommendation_data)}
        )
        return True

    # -- impressions ---------------------------------------------------------

    def _stamp(self, impression: Impression) -> Impression:
        now = datetime.now(timezone.utc)
        return impression.model_copy(
            update={
                "id": impression.id or f"imp-{len(self.impressions) + 1}",
                "created_at": impression.created_at or now,
                "updated_at": now,
            }
        )

    async def create(self, impression):
        self._call("create")
        stored = self._stamp(impression)
        self.impressions[stored.id] = stored
        return stored

    async def create_many(self, impressions):
        self._call("create_many", count=len(impressions))
        for impression in impressions:
            stored = self._stamp(impression)
            self.impressions[stored.id] = stored
        return len(impressions)

    async def get(self, impression_id):
        return self.impressions.get(impression_id)

    async def update(self, impression, fields):
        if impression.id not in self.impressions:
            raise ImpressionNotFound(impression.id)
        current = self.impressions[impression.id]
        self.impressions[impression.id] = current.model_copy(
            update={f: getattr(impression, f) for f in fields}
        )

    async def find_recent(self, *, item_id, item_type, since, user_id=None, session_id=None):
        matches = [
            i
            for i in self.impressions.values()
            if i.item_id == item_id
            and i.item_type == item_type
            and i.created_at >= since
            and i.user_id == user_id
            and (user_id is not None or session_id is None or i.session_id == session_id)
        ]
        matches.sort(key=lambda i: i.created_at, reverse=True)
        return matches[0] if matches else None


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def app_with_store(store):
    """Attach ``store`` to the app in every store role and set an API key."""
    prev = os.environ.get("API_KEY")
    os.environ["API_KEY"] = "testkey"

    app.state.content = store
    app.state.profiles = store
    app.state.impressions = store
    yield app
    for attr in ("content", "profiles", "impressions"):
        try:
            delattr(app.state, attr)
        except (AttributeError, KeyError):
            pass
    if prev is None:
        del os.environ["API_KEY"]
    else:
        os.environ["API_KEY"] = prev
