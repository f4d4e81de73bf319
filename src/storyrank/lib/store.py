"""Read-only content store adapter over Elasticsearch.

Every query the ranking engine issues against works, posts, users, follows
and bookmarks is built here. Callers above this layer only use the
semantic methods of :class:`ContentStore`.

Index layout (documents are snake_case; ``_id`` is the entity id):

* ``works``     – Work documents (``privacy``, ``status``, ``genre`` ...)
* ``posts``     – Post documents
* ``users``     – user profiles; doubles as the people-candidate source
* ``follows``   – ``{follower_id, followee_id, created_at}``
* ``bookmarks`` – ``{user_id, type, work_id, created_at}``
"""

import logging
from collections.abc import Collection, Iterable
from datetime import datetime

from elasticsearch import NotFoundError

from ..config import Settings, settings as default_settings
from ..models import Creator, Post, UserProfile, Work
from .elasticsearch import (
    date_range,
    hit_document,
    iter_hits,
    terms_filter,
    unwrap_es_response,
)

logger = logging.getLogger(__name__)

# Upper bound for "fetch every edge" lookups (follows, bookmarks).
MAX_EDGE_FETCH = 5000

WORK_SORTS = {
    "newest": [{"published_at": "desc"}],
    "trending": [{"views": "desc"}, {"likes_count": "desc"}],
    "popular": [{"views": "desc"}],
    "featured": [{"featured_at": "desc"}],
}

POST_SORTS = {
    "newest": [{"created_at": "desc"}],
    "engaging": [{"likes_count": "desc"}, {"comments_count": "desc"}, {"created_at": "desc"}],
}

# Works are large; chapters are never needed for ranking.
WORK_SOURCE_EXCLUDES = ["chapters"]


def _any_keyword(field: str, values: Iterable[str]) -> dict:
    """Match ``field`` against any of ``values``, ignoring case."""
    return {
        "bool": {
            "should": [
                {"term": {field: {"value": v, "case_insensitive": True}}}
                for v in values
            ],
            "minimum_should_match": 1,
        }
    }


def build_work_query(
    *,
    genres: Collection[str] | None = None,
    fandoms: Collection[str] | None = None,
    author_ids: Collection[str] | None = None,
    tags: Collection[str] | None = None,
    published_since: datetime | str | None = None,
    min_engagement: bool = False,
    featured_only: bool = False,
    exclude_author: str | None = None,
    exclude_ids: Collection[str] = (),
) -> dict:
    """Build the bool query for public, published works matching the filters."""
    filters: list[dict] = [
        {"term": {"privacy": "Public"}},
        {"term": {"status": "published"}},
    ]
    must_not: list[dict] = []

    if genres:
        filters.append(_any_keyword("genre", genres))
    if fandoms:
        filters.append(_any_keyword("fandom", fandoms))
    if author_ids:
        filters.append(terms_filter("author_id", author_ids))
    if tags:
        filters.append(terms_filter("tags", tags))
    if published_since is not None:
        filters.append(date_range("published_at", published_since))
    if min_engagement:
        filters.append({
            "bool": {
                "should": [
                    {"range": {"likes_count": {"gte": 1}}},
                    {"range": {"bookmarks_count": {"gte": 1}}},
                ],
                "minimum_should_match": 1,
            }
        })
    if featured_only:
        filters.append({"term": {"featured": True}})
    if exclude_author:
        must_not.append({"term": {"author_id": exclude_author}})
    if exclude_ids:
        must_not.append({"ids": {"values": list(exclude_ids)}})

    query: dict = {"bool": {"filter": filters}}
    if must_not:
        query["bool"]["must_not"] = must_not
    return query


def build_post_query(
    *,
    author_ids: Collection[str] | None = None,
    created_since: datetime | str | None = None,
    exclude_author: str | None = None,
    exclude_ids: Collection[str] = (),
) -> dict:
    filters: list[dict] = []
    must_not: list[dict] = []
    if author_ids:
        filters.append(terms_filter("author_id", author_ids))
    if created_since is not None:
        filters.append(date_range("created_at", created_since))
    if exclude_author:
        must_not.append({"term": {"author_id": exclude_author}})
    if exclude_ids:
        must_not.append({"ids": {"values": list(exclude_ids)}})

    query: dict = {"bool": {"filter": filters}}
    if must_not:
        query["bool"]["must_not"] = must_not
    return query


def build_creator_query(*, exclude_ids: Collection[str] = ()) -> dict:
    """Creators with at least one work whose profile is not invisible."""
    must_not: list[dict] = [{"term": {"visibility": "invisible"}}]
    if exclude_ids:
        must_not.append({"ids": {"values": list(exclude_ids)}})
    return {
        "bool": {
            "filter": [{"range": {"stats.works_count": {"gte": 1}}}],
            "must_not": must_not,
        }
    }


class ContentStore:
    """Semantic read access to the platform's content indices."""

    def __init__(self, es, config: Settings = default_settings):
        self.es = es
        self.config = config

    # -- works ---------------------------------------------------------------

    async def search_works(
        self,
        *,
        limit: int,
        sort: str = "newest",
        **filters,
    ) -> list[Work]:
        """Return up to ``limit`` public, published works.

        ``filters`` are the keyword arguments of :func:`build_work_query`.
        """
        if limit <= 0:
            return []
        resp = await self.es.search(
            index=self.config.works_index,
            query=build_work_query(**filters),
            sort=WORK_SORTS[sort],
            size=limit,
            _source_excludes=WORK_SOURCE_EXCLUDES,
        )
        return [Work.model_validate(hit_document(i, src)) for i, src in iter_hits(resp)]

    async def get_works(self, work_ids: Collection[str]) -> list[Work]:
        """Fetch works by id regardless of privacy (used for the viewer's own bookmarks)."""
        if not work_ids:
            return []
        resp = await self.es.search(
            index=self.config.works_index,
            query={"ids": {"values": list(work_ids)}},
            size=len(work_ids),
            _source_excludes=WORK_SOURCE_EXCLUDES,
        )
        return [Work.model_validate(hit_document(i, src)) for i, src in iter_hits(resp)]

    async def get_work(self, work_id: str) -> Work | None:
        works = await self.get_works([work_id])
        return works[0] if works else None

    # -- posts ---------------------------------------------------------------

    async def search_posts(
        self,
        *,
        limit: int,
        sort: str = "newest",
        **filters,
    ) -> list[Post]:
        if limit <= 0:
            return []
        resp = await self.es.search(
            index=self.config.posts_index,
            query=build_post_query(**filters),
            sort=POST_SORTS[sort],
            size=limit,
        )
        return [Post.model_validate(hit_document(i, src)) for i, src in iter_hits(resp)]

    # -- people --------------------------------------------------------------

    async def search_creators(
        self,
        *,
        limit: int,
        exclude_ids: Collection[str] = (),
    ) -> list[Creator]:
        """Popular creators, most followed first."""
        if limit <= 0:
            return []
        resp = await self.es.search(
            index=self.config.users_index,
            query=build_creator_query(exclude_ids=exclude_ids),
            sort=[{"stats.followers_count": "desc"}, {"created_at": "desc"}],
            size=limit,
        )
        return [Creator.model_validate(hit_document(i, src)) for i, src in iter_hits(resp)]

    async def private_author_ids(self) -> set[str]:
        """Ids of every account whose profile is private."""
        resp = await self.es.search(
            index=self.config.users_index,
            query={"bool": {"filter": [{"term": {"visibility": "private"}}]}},
            size=MAX_EDGE_FETCH,
            _source=False,
        )
        return {doc_id for doc_id, _ in iter_hits(resp)}

    async def get_user(self, user_id: str) -> UserProfile | None:
        try:
            resp = await self.es.get(index=self.config.users_index, id=user_id)
        except NotFoundError:
            return None
        data = unwrap_es_response(resp)
        src = data.get("_source") or {}
        return UserProfile.model_validate(hit_document(data.get("_id", user_id), src))

    # -- social graph --------------------------------------------------------

    async def followee_ids(self, user_id: str) -> set[str]:
        """Ids of every account ``user_id`` follows, in one query."""
        resp = await self.es.search(
            index=self.config.follows_index,
            query={"bool": {"filter": [{"term": {"follower_id": user_id}}]}},
            size=MAX_EDGE_FETCH,
            _source=["followee_id"],
        )
        return {src["followee_id"] for _, src in iter_hits(resp) if src.get("followee_id")}

    async def is_following(self, follower_id: str, followee_id: str) -> bool:
        resp = await self.es.count(
            index=self.config.follows_index,
            query={
                "bool": {
                    "filter": [
                        {"term": {"follower_id": follower_id}},
                        {"term": {"followee_id": followee_id}},
                    ]
                }
            },
        )
        return unwrap_es_response(resp).get("count", 0) > 0

    async def bookmarked_work_ids(self, user_id: str) -> list[str]:
        """Work ids the user bookmarked, most recent first."""
        resp = await self.es.search(
            index=self.config.bookmarks_index,
            query={
                "bool": {
                    "filter": [
                        {"term": {"user_id": user_id}},
                        {"term": {"type": "work"}},
                    ]
                }
            },
            sort=[{"created_at": "desc"}],
            size=MAX_EDGE_FETCH,
            _source=["work_id"],
        )
        return [src["work_id"] for _, src in iter_hits(resp) if src.get("work_id")]
