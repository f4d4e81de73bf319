"""Signal weights per (mode, surface).

The table is checked for completeness at import time: every combination
the ranker scores must have an entry, and nothing else may. Looking up a
combination that is not in the table raises unless the fallback is
enabled in settings.
"""

import logging

from pydantic import BaseModel

from ..models import Mode, Surface

logger = logging.getLogger(__name__)


class SignalWeights(BaseModel, frozen=True):
    """Weights of the signals combined into a candidate's score.

    Exploration is listed here like any other signal; the new-item boost is
    applied outside the table.
    """

    engagement: float = 0.0
    freshness: float = 0.0
    interest: float = 0.0
    overlap: float = 0.0
    social: float = 0.0
    exploration: float = 0.0


class UnknownWeightsError(KeyError):
    """No weights are defined for the requested (mode, surface)."""


SCORING_WEIGHTS: dict[tuple[Mode, Surface], SignalWeights] = {
    (Mode.LOGGED_OUT, Surface.WORKS): SignalWeights(
        engagement=0.50, freshness=0.35, exploration=0.15
    ),
    (Mode.LOGGED_OUT, Surface.POSTS): SignalWeights(
        engagement=0.55, freshness=0.40, exploration=0.05
    ),
    (Mode.LOGGED_IN, Surface.WORKS): SignalWeights(
        interest=0.30, engagement=0.25, freshness=0.20, social=0.15, exploration=0.10
    ),
    (Mode.LOGGED_IN, Surface.POSTS): SignalWeights(
        interest=0.25, engagement=0.25, freshness=0.30, social=0.15, exploration=0.05
    ),
    (Mode.LOGGED_IN, Surface.PEOPLE): SignalWeights(
        overlap=0.30, engagement=0.25, freshness=0.10, social=0.25, exploration=0.10
    ),
    # Cold start leans on exploration
    (Mode.COLD_START, Surface.WORKS): SignalWeights(
        engagement=0.35, freshness=0.25, exploration=0.25, interest=0.15
    ),
    (Mode.COLD_START, Surface.POSTS): SignalWeights(
        engagement=0.40, freshness=0.35, exploration=0.15, interest=0.10
    ),
    (Mode.COLD_START, Surface.PEOPLE): SignalWeights(
        engagement=0.35, freshness=0.15, exploration=0.25, overlap=0.25
    ),
}

# Logged-out people are listed by popularity and never scored.
SCORED_COMBINATIONS = frozenset(
    (mode, surface)
    for mode in Mode
    for surface in Surface
    if (mode, surface) != (Mode.LOGGED_OUT, Surface.PEOPLE)
)

FALLBACK_KEY = (Mode.LOGGED_OUT, Surface.WORKS)


def validate_weight_table(table: dict[tuple[Mode, Surface], SignalWeights]) -> None:
    """Raise ``ValueError`` unless ``table`` covers exactly the scored combinations."""
    missing = SCORED_COMBINATIONS - table.keys()
    extra = table.keys() - SCORED_COMBINATIONS
    if missing or extra:
        raise ValueError(
            "Invalid scoring weight table: "
            f"missing={sorted((m.value, s.value) for m, s in missing)} "
            f"unexpected={sorted((m.value, s.value) for m, s in extra)}"
        )


validate_weight_table(SCORING_WEIGHTS)


def weights_for(mode: Mode, surface: Surface, *, fallback: bool = False) -> SignalWeights:
    """Look up the weights for ``(mode, surface)``.

    With ``fallback`` an unknown pair gets the logged-out works weights and
    a warning; without it an ``UnknownWeightsError`` is raised.
    """
    try:
        return SCORING_WEIGHTS[(mode, surface)]
    except KeyError:
        if not fallback:
            raise UnknownWeightsError((mode.value, surface.value)) from None
        logger.warning(
            "No scoring weights for mode=%s surface=%s; using %s/%s",
            mode.value,
            surface.value,
            *(k.value for k in FALLBACK_KEY),
        )
        return SCORING_WEIGHTS[FALLBACK_KEY]
