import pytest

from ..models import Mode, Surface
from .weights import (
    SCORED_COMBINATIONS,
    SCORING_WEIGHTS,
    SignalWeights,
    UnknownWeightsError,
    validate_weight_table,
    weights_for,
)


def test_table_covers_every_scored_combination():
    assert set(SCORING_WEIGHTS) == SCORED_COMBINATIONS
    assert (Mode.LOGGED_OUT, Surface.PEOPLE) not in SCORING_WEIGHTS


@pytest.mark.parametrize("key", sorted(SCORING_WEIGHTS, key=str))
def test_weights_sum_to_one(key):
    w = SCORING_WEIGHTS[key]
    total = w.engagement + w.freshness + w.interest + w.overlap + w.social + w.exploration
    assert total == pytest.approx(1.0)


def test_logged_in_works_weights():
    w = weights_for(Mode.LOGGED_IN, Surface.WORKS)
    assert (w.interest, w.engagement, w.freshness, w.social, w.exploration) == (
        0.30, 0.25, 0.20, 0.15, 0.10,
    )


def test_unknown_pair_raises_without_fallback():
    with pytest.raises(UnknownWeightsError):
        weights_for(Mode.LOGGED_OUT, Surface.PEOPLE)


def test_unknown_pair_uses_logged_out_works_with_fallback(caplog):
    w = weights_for(Mode.LOGGED_OUT, Surface.PEOPLE, fallback=True)
    assert w == SCORING_WEIGHTS[(Mode.LOGGED_OUT, Surface.WORKS)]
    assert "No scoring weights" in caplog.text


def test_validation_rejects_incomplete_table():
    table = dict(SCORING_WEIGHTS)
    del table[(Mode.COLD_START, Surface.POSTS)]
    with pytest.raises(ValueError, match="cold_start"):
        validate_weight_table(table)


def test_validation_rejects_unexpected_entries():
    table = dict(SCORING_WEIGHTS)
    table[(Mode.LOGGED_OUT, Surface.PEOPLE)] = SignalWeights(engagement=1.0)
    with pytest.raises(ValueError, match="unexpected"):
        validate_weight_table(table)
