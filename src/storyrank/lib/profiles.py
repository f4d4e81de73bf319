"""Read-modify-write access to ``recommendation_data`` on user documents.

Updates use Elasticsearch optimistic concurrency control: the document is
read together with its ``_seq_no``/``_primary_term``, mutated in memory by
a pure function, and written back only if nobody else wrote in between.
On a version conflict the whole cycle is retried from a fresh read, so two
devices engaging at the same time never lose an increment.
"""

import logging
from collections.abc import Callable

from elasticsearch import ConflictError, NotFoundError

from ..config import Settings, settings as default_settings
from ..models import RecommendationData
from .elasticsearch import unwrap_es_response

logger = logging.getLogger(__name__)

Mutation = Callable[[RecommendationData], RecommendationData]


class ProfileConflictError(RuntimeError):
    """Raised when an update keeps losing the optimistic-concurrency race."""


class ProfileStore:
    def __init__(self, es, config: Settings = default_settings):
        self.es = es
        self.config = config

    async def update_recommendation_data(self, user_id: str, mutate: Mutation) -> bool:
        """Apply ``mutate`` to the user's recommendation data.

        Returns ``False`` when the user does not exist.
        """
        attempts = max(1, self.config.profile_update_retries)
        for attempt in range(1, attempts + 1):
            try:
                resp = await self.es.get(
                    index=self.config.users_index,
                    id=user_id,
                    _source=["recommendation_data"],
                )
            except NotFoundError:
                logger.info("Profile %s not found; skipping update", user_id)
                return False

            doc = unwrap_es_response(resp)
            current = RecommendationData.model_validate(
                (doc.get("_source") or {}).get("recommendation_data") or {}
            )
            updated = mutate(current)

            try:
                await self.es.update(
                    index=self.config.users_index,
                    id=user_id,
                    doc={"recommendation_data": updated.model_dump(mode="json")},
                    if_seq_no=doc["_seq_no"],
                    if_primary_term=doc["_primary_term"],
                )
                return True
            except ConflictError:
                logger.info(
                    "Version conflict updating profile %s (attempt %d/%d)",
                    user_id,
                    attempt,
                    attempts,
                )

        raise ProfileConflictError(
            f"Gave up updating profile {user_id} after {attempts} attempts"
        )
