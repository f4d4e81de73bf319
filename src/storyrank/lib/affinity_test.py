from datetime import datetime, timedelta, timezone

import pytest

from ..models import AuthorAffinity, RecommendationData, SeenWork, TagAffinity
from .affinity import (
    MAX_AFFINITIES,
    MAX_RECENTLY_SEEN,
    bump_author_affinity,
    bump_tag_affinities,
    fold_engagement,
    record_seen_work,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_new_tags_start_at_one_and_known_tags_gain_half():
    result = bump_tag_affinities([TagAffinity(tag="angst", weight=1.0)], ["angst", "fluff"])
    assert [(a.tag, a.weight) for a in result] == [("angst", 1.5), ("fluff", 1.0)]


def test_weights_are_capped_at_ten():
    result = bump_author_affinity([AuthorAffinity(author_id="a1", weight=9.8)], "a1")
    assert result[0].weight == 10.0


def test_lists_are_truncated_to_top_fifty_by_weight():
    affinities = [TagAffinity(tag=f"t{i}", weight=2.0) for i in range(MAX_AFFINITIES)]
    result = bump_tag_affinities(affinities, ["new"])
    assert len(result) == MAX_AFFINITIES
    assert "new" not in {a.tag for a in result}


def test_equal_weights_keep_insertion_order():
    affinities = [TagAffinity(tag="b"), TagAffinity(tag="a")]
    result = bump_tag_affinities(affinities, ["c"])
    assert [a.tag for a in result] == ["b", "a", "c"]


def test_fold_engagement_does_not_mutate_input():
    data = RecommendationData(tag_affinities=[TagAffinity(tag="angst", weight=1.0)])
    updated = fold_engagement(data, tags=["angst"], author_id="a1", now=NOW)
    assert data.tag_affinities[0].weight == 1.0
    assert updated.tag_affinities[0].weight == 1.5
    assert updated.author_affinities[0].author_id == "a1"
    assert updated.computed_at == NOW


def test_record_seen_work_moves_existing_entry_to_front():
    earlier = NOW - timedelta(days=1)
    data = RecommendationData(
        recently_seen_works=[
            SeenWork(work_id="w1", seen_at=earlier),
            SeenWork(work_id="w2", seen_at=earlier),
        ]
    )
    updated = record_seen_work(data, "w2", NOW)
    assert [(s.work_id, s.seen_at) for s in updated.recently_seen_works] == [
        ("w2", NOW),
        ("w1", earlier),
    ]


def test_recently_seen_is_capped():
    data = RecommendationData(
        recently_seen_works=[SeenWork(work_id=f"w{i}", seen_at=NOW) for i in range(MAX_RECENTLY_SEEN)]
    )
    updated = record_seen_work(data, "latest", NOW)
    assert len(updated.recently_seen_works) == MAX_RECENTLY_SEEN
    assert updated.recently_seen_works[0].work_id == "latest"
    assert updated.recently_seen_works[-1].work_id == f"w{MAX_RECENTLY_SEEN - 2}"


@pytest.mark.parametrize("weight", [0.0, 4.2, 10.0])
def test_author_bump_stays_in_range(weight):
    result = bump_author_affinity([AuthorAffinity(author_id="a1", weight=weight)], "a1")
    assert 0.0 <= result[0].weight <= 10.0
