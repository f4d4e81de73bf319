"""Tests for candidate generators and the per-surface mixes."""

import pytest

from ...conftest import hours_ago, make_creator, make_post, make_user, make_work
from ...models import Mode, Surface
from . import GenerationContext, generate_candidates, get_generator, list_generators
from .base import CandidateGenerator, register_generator
from .mixer import MIXES, allocate_counts, dedup_candidates


# ---------------------------------------------------------------------------
# Registry and mixes
# ---------------------------------------------------------------------------

def test_every_mix_refers_to_registered_generators():
    names = set(list_generators())
    for mix in MIXES.values():
        for bucket in mix.buckets:
            assert bucket.name in names
        if mix.infill:
            assert mix.infill in names


def test_mix_exists_for_every_surface_and_mode():
    assert set(MIXES) == {(s, m) for s in Surface for m in Mode}


def test_allocate_counts_rounds_up():
    mix = MIXES[(Surface.WORKS, Mode.LOGGED_OUT)]
    assert allocate_counts(mix.buckets, 60) == [30, 18, 12]
    assert allocate_counts(mix.buckets, 7) == [4, 3, 2]


def test_dedup_keeps_first_occurrence():
    first = make_work("w1", title="first")
    other = make_work("w2")
    second = make_work("w1", title="second")
    assert dedup_candidates([first, other, second]) == [first, other]


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_genre_match_without_genres_does_not_query(store):
    context = GenerationContext(viewer=make_user("u1"))
    result = await get_generator("genre_match").generate(store, context, 10)
    assert result.candidates == []
    assert store.calls == []


@pytest.mark.asyncio
async def test_personalized_works_exclude_own_and_bookmarked(store):
    store.add(
        make_work("mine", "u1", genre="Fantasy"),
        make_work("saved", "a1", genre="Fantasy"),
        make_work("other", "a2", genre="fantasy"),
    )
    context = GenerationContext(viewer=make_user("u1", genres=["FANTASY"]), bookmarked_ids=("saved",))
    result = await get_generator("genre_match").generate(store, context, 10)
    assert [w.id for w in result.candidates] == ["other"]
    assert result.candidates[0].generator_name == "genre_match"


@pytest.mark.asyncio
async def test_bookmark_tags_finds_works_sharing_tags(store):
    store.add(
        make_work("saved", "a1", tags=["angst", "slow burn"]),
        make_work("match", "a2", tags=["angst"]),
        make_work("miss", "a3", tags=["crack"]),
    )
    context = GenerationContext(viewer=make_user("u1"), bookmarked_ids=("saved",))
    result = await get_generator("bookmark_tags").generate(store, context, 10)
    assert [w.id for w in result.candidates] == ["match"]


@pytest.mark.asyncio
async def test_trending_works_limited_to_period(store):
    store.add(
        make_work("recent", published_at=hours_ago(24), views=5),
        make_work("old", published_at=hours_ago(24 * 20), views=500),
    )
    context = GenerationContext(period="week")
    result = await get_generator("trending_works").generate(store, context, 10)
    assert [w.id for w in result.candidates] == ["recent"]


@pytest.mark.asyncio
async def test_fresh_works_need_some_engagement(store):
    store.add(
        make_work("liked", likes_count=1),
        make_work("ignored"),
    )
    result = await get_generator("fresh_works").generate(store, GenerationContext(), 10)
    assert [w.id for w in result.candidates] == ["liked"]


@pytest.mark.asyncio
async def test_engaging_posts_window_is_shorter_when_logged_out(store):
    store.add(make_post("p1", created_at=hours_ago(48), likes_count=50))
    logged_out = await get_generator("engaging_posts").generate(store, GenerationContext(), 10)
    personal = await get_generator("engaging_posts").generate(
        store, GenerationContext(viewer=make_user("u1")), 10
    )
    assert logged_out.candidates == []
    assert [p.id for p in personal.candidates] == ["p1"]


@pytest.mark.asyncio
async def test_popular_creators_skip_viewer_and_followees(store):
    store.add(make_creator("u1", followers=99), make_creator("c1", followers=50), make_creator("c2", followers=5))
    context = GenerationContext(viewer=make_user("u1"), followee_ids=frozenset({"c1"}))
    result = await get_generator("popular_creators").generate(store, context, 10)
    assert [c.id for c in result.candidates] == ["c2"]


# ---------------------------------------------------------------------------
# generate_candidates
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mix_deduplicates_across_buckets(store):
    # Liked and featured and trending at once: every logged-out bucket returns it
    store.add(make_work("w1", likes_count=3, featured=True, featured_at=hours_ago(1), published_at=hours_ago(2)))
    pool = await generate_candidates(store, Surface.WORKS, Mode.LOGGED_OUT, GenerationContext(), 30)
    assert [w.id for w in pool] == ["w1"]
    assert pool[0].generator_name == "trending_works"


@pytest.mark.asyncio
async def test_failing_bucket_is_treated_as_empty(store, caplog):
    class BrokenGenerator(CandidateGenerator):
        @property
        def name(self) -> str:
            return "fandom_match"

        async def generate(self, store, context, num_candidates=100):
            raise RuntimeError("shard failure")

    original = get_generator("fandom_match")
    register_generator(BrokenGenerator())
    try:
        store.add(make_work("w1", "a1", genre="Fantasy"))
        viewer = make_user("u1", genres=["Fantasy"], fandoms=["Naruto"])
        pool = await generate_candidates(
            store, Surface.WORKS, Mode.LOGGED_IN, GenerationContext(viewer=viewer), 30
        )
    finally:
        register_generator(original)

    assert "w1" in {w.id for w in pool}
    assert "Candidate generator 'fandom_match' failed" in caplog.text


@pytest.mark.asyncio
async def test_infill_tops_up_thin_personalized_pool(store):
    store.add(
        make_work("match", "a1", genre="Fantasy", published_at=hours_ago(30)),
        make_work("popular", "a2", genre="Horror", published_at=hours_ago(30), views=1000),
    )
    viewer = make_user("u1", genres=["Fantasy"])
    pool = await generate_candidates(
        store, Surface.WORKS, Mode.LOGGED_IN, GenerationContext(viewer=viewer), 30
    )
    ids = [w.id for w in pool]
    assert ids[0] == "match"
    assert "popular" in ids
    assert {w.generator_name for w in pool} == {"genre_match", "trending_works"}


@pytest.mark.asyncio
async def test_infill_skips_ids_already_in_pool(store):
    store.add(make_work("match", "a1", genre="Fantasy", published_at=hours_ago(30)))
    viewer = make_user("u1", genres=["Fantasy"])
    pool = await generate_candidates(
        store, Surface.WORKS, Mode.LOGGED_IN, GenerationContext(viewer=viewer), 30
    )
    assert [w.id for w in pool] == ["match"]
    trending_calls = [kw for name, kw in store.calls if name == "search_works" and kw["sort"] == "trending"]
    assert len(trending_calls) == 1
