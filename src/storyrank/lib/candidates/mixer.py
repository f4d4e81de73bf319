"""Candidate mixes – which generators feed each (surface, mode), and in what share.

Each bucket of a mix asks its generator for ``ceil(share × target)``
candidates. Buckets run concurrently and are merged in mix order with
first-occurrence de-duplication. When the merged pool is still below
``infill_threshold × target`` the infill generator tops it up, skipping
ids already retrieved.

A failing bucket is logged and contributes nothing; the rest of the mix
still runs.
"""

import asyncio
import logging
import math

from pydantic import BaseModel, Field

from ...models import Candidate, Mode, Surface
from .base import GenerationContext, get_generator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Mix definitions
# ---------------------------------------------------------------------------

class BucketSpec(BaseModel):
    """A generator and the share of the target it should supply."""

    name: str = Field(..., description="Name of the candidate generator")
    share: float = Field(..., gt=0, description="Fraction of the target yield")


class MixSpec(BaseModel):
    buckets: list[BucketSpec] = Field(..., min_length=1)
    infill: str | None = Field(
        None, description="Generator used when the buckets under-deliver"
    )
    infill_threshold: float = 0.5
    infill_share: float = 0.3


def _mix(*buckets: tuple[str, float], **kwargs) -> MixSpec:
    return MixSpec(buckets=[BucketSpec(name=n, share=s) for n, s in buckets], **kwargs)


_PERSONAL_WORKS = _mix(
    ("genre_match", 0.30),
    ("fandom_match", 0.30),
    ("followed_authors", 0.25),
    ("bookmark_tags", 0.20),
    infill="trending_works",
)

_PERSONAL_POSTS = _mix(
    ("followed_posts", 0.50),
    ("engaging_posts", 0.30),
    ("recent_posts", 0.20),
)

_PEOPLE = _mix(("popular_creators", 1.0))

MIXES: dict[tuple[Surface, Mode], MixSpec] = {
    (Surface.WORKS, Mode.LOGGED_OUT): _mix(
        ("trending_works", 0.50),
        ("fresh_works", 0.30),
        ("featured_works", 0.20),
    ),
    (Surface.WORKS, Mode.COLD_START): _PERSONAL_WORKS,
    (Surface.WORKS, Mode.LOGGED_IN): _PERSONAL_WORKS,
    (Surface.POSTS, Mode.LOGGED_OUT): _mix(("engaging_posts", 1.0)),
    (Surface.POSTS, Mode.COLD_START): _PERSONAL_POSTS,
    (Surface.POSTS, Mode.LOGGED_IN): _PERSONAL_POSTS,
    (Surface.PEOPLE, Mode.LOGGED_OUT): _PEOPLE,
    (Surface.PEOPLE, Mode.COLD_START): _PEOPLE,
    (Surface.PEOPLE, Mode.LOGGED_IN): _PEOPLE,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def allocate_counts(buckets: list[BucketSpec], total: int) -> list[int]:
    """Per-bucket request sizes: each bucket's share of *total*, rounded up."""
    # Rounded first so float noise in share × total cannot add a slot
    return [math.ceil(round(b.share * total, 6)) for b in buckets]


def dedup_candidates(candidates: list[Candidate]) -> list[Candidate]:
    """Remove duplicate items (by id), keeping the first occurrence."""
    seen: set[str] = set()
    deduped: list[Candidate] = []
    for c in candidates:
        if c.id in seen:
            continue
        seen.add(c.id)
        deduped.append(c)
    return deduped


async def run_generator(
    name: str, store, context: GenerationContext, count: int
) -> list[Candidate]:
    """Run one generator, treating any store failure as an empty bucket."""
    gen = get_generator(name)
    if gen is None:
        raise KeyError(f"Unknown generator: {name}")
    try:
        result = await gen.generate(store, context, num_candidates=count)
    except Exception:
        logger.exception("Candidate generator '%s' failed", name)
        return []
    return result.candidates


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def generate_candidates(
    store,
    surface: Surface,
    mode: Mode,
    context: GenerationContext,
    target: int,
) -> list[Candidate]:
    """Retrieve a de-duplicated candidate pool of roughly *target* items."""
    mix = MIXES[(surface, mode)]
    counts = allocate_counts(mix.buckets, target)

    results = await asyncio.gather(
        *(
            run_generator(spec.name, store, context, count)
            for spec, count in zip(mix.buckets, counts)
            if count > 0
        )
    )
    pool = dedup_candidates([c for bucket in results for c in bucket])

    # ---- Infill: top up if the buckets came back thin ----
    if mix.infill is not None and len(pool) < mix.infill_threshold * target:
        infill_context = context.model_copy(
            update={"exclude_ids": context.exclude_ids | {c.id for c in pool}}
        )
        extra = await run_generator(
            mix.infill, store, infill_context, math.ceil(mix.infill_share * target)
        )
        pool = dedup_candidates(pool + extra)

    logger.debug(
        "Generated %d %s candidates (mode=%s, target=%d)",
        len(pool),
        surface.value,
        mode.value,
        target,
    )
    return pool
