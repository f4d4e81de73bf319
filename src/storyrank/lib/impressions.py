"""Impression persistence over the ``impressions`` index.

Documents expire through the index lifecycle policy (90 days); nothing
here deletes them, and every lookup tolerates their absence.
"""

import logging
from collections.abc import Collection
from datetime import datetime, timezone

from elasticsearch import NotFoundError
from elasticsearch.helpers import async_bulk

from ..config import Settings, settings as default_settings
from ..models import Impression, ItemType
from .elasticsearch import date_range, hit_document, iter_hits, unwrap_es_response

logger = logging.getLogger(__name__)


class ImpressionNotFound(LookupError):
    """No impression exists with the requested id."""


def _document(impression: Impression) -> dict:
    return impression.model_dump(mode="json", exclude={"id"})


class ImpressionStore:
    def __init__(self, es, config: Settings = default_settings):
        self.es = es
        self.config = config

    def _stamp(self, impression: Impression) -> Impression:
        now = datetime.now(timezone.utc)
        return impression.model_copy(
            update={
                "created_at": impression.created_at or now,
                "updated_at": now,
            }
        )

    async def create(self, impression: Impression) -> Impression:
        """Persist one impression and return it with its new id.

        Waits for the refresh so an immediate ``find_recent`` sees it.
        """
        impression = self._stamp(impression)
        resp = await self.es.index(
            index=self.config.impressions_index,
            document=_document(impression),
            refresh="wait_for",
        )
        return impression.model_copy(update={"id": unwrap_es_response(resp)["_id"]})

    async def create_many(self, impressions: list[Impression]) -> int:
        """Persist a batch in a single bulk request; returns the number written."""
        if not impressions:
            return 0
        actions = [
            {"_index": self.config.impressions_index, "_source": _document(self._stamp(imp))}
            for imp in impressions
        ]
        success, _ = await async_bulk(self.es, actions)
        return success

    async def get(self, impression_id: str) -> Impression | None:
        try:
            resp = await self.es.get(index=self.config.impressions_index, id=impression_id)
        except NotFoundError:
            return None
        doc = unwrap_es_response(resp)
        return Impression.model_validate(hit_document(doc.get("_id"), doc.get("_source") or {}))

    async def update(self, impression: Impression, fields: Collection[str]) -> None:
        """Write the named fields of ``impression`` back to its document."""
        changes = impression.model_dump(mode="json", include=set(fields) | {"updated_at"})
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            await self.es.update(
                index=self.config.impressions_index,
                id=impression.id,
                doc=changes,
            )
        except NotFoundError as exc:
            raise ImpressionNotFound(impression.id) from exc

    async def find_recent(
        self,
        *,
        item_id: str,
        item_type: ItemType,
        since: datetime,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> Impression | None:
        """Most recent impression of an item for a viewer created after ``since``.

        Logged-in viewers are matched by user id. Logged-out callers are
        matched by session id when they have one, and otherwise share the
        anonymous bucket of impressions without a user id.
        """
        filters: list[dict] = [
            {"term": {"item_id": item_id}},
            {"term": {"item_type": item_type.value}},
            date_range("created_at", since),
        ]
        must_not: list[dict] = []
        if user_id is not None:
            filters.append({"term": {"user_id": user_id}})
        else:
            must_not.append({"exists": {"field": "user_id"}})
            if session_id is not None:
                filters.append({"term": {"session_id": session_id}})

        query: dict = {"bool": {"filter": filters}}
        if must_not:
            query["bool"]["must_not"] = must_not

        resp = await self.es.search(
            index=self.config.impressions_index,
            query=query,
            sort=[{"created_at": "desc"}],
            size=1,
        )
        for doc_id, src in iter_hits(resp):
            return Impression.model_validate(hit_document(doc_id, src))
        return None
