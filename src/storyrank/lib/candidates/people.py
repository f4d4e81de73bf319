"""People candidate generator.

Returns creators (users with at least one work and a visible profile),
most followed first. For a signed-in viewer the viewer and everyone the
viewer already follows are excluded.
"""

from .base import CandidateGenerator, CandidateResult


class PopularCreatorsGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "popular_creators"

    async def generate(self, store, context, num_candidates=100) -> CandidateResult:
        excluded = set(context.exclude_ids)
        if context.viewer:
            excluded |= context.followee_ids | {context.viewer.id}
        creators = await store.search_creators(
            limit=num_candidates, exclude_ids=sorted(excluded)
        )
        return self.result(creators)
