"""Base abstraction for candidate generators.

Each generator has a unique name and an async `generate` method that returns
a `CandidateResult` holding the items it retrieved.  Generators are registered
in a global registry so mixes can refer to them by name.
"""

from abc import ABC, abstractmethod
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from ...models import Candidate, UserProfile


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

PERIODS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


class GenerationContext(BaseModel):
    """Per-request inputs shared by every generator of one mix.

    The follow set and bookmarks are fetched once per request and reused
    by all buckets (and later by the scorer).
    """

    model_config = ConfigDict(frozen=True)

    viewer: UserProfile | None = None
    followee_ids: frozenset[str] = frozenset()
    bookmarked_ids: tuple[str, ...] = ()
    period: str = Field("week", description="Trending window: day, week or month")
    exclude_ids: frozenset[str] = Field(
        frozenset(), description="Ids already retrieved; used by infill passes"
    )

    @property
    def viewer_id(self) -> str | None:
        return self.viewer.id if self.viewer else None

    @property
    def period_delta(self) -> timedelta:
        return PERIODS.get(self.period, PERIODS["week"])


class CandidateResult(BaseModel):
    """The output of a candidate generator invocation."""

    generator_name: str = Field(..., description="Name of the generator that produced these candidates")
    candidates: list[Candidate] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class CandidateGenerator(ABC):
    """Abstract base class for named candidate generators.

    Subclasses must implement `name` (property) and `generate`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name identifying this generator (e.g. ``genre_match``)."""
        ...

    @abstractmethod
    async def generate(
        self,
        store,
        context: GenerationContext,
        num_candidates: int = 100,
    ) -> CandidateResult:
        """Produce candidates for the viewer described by ``context``.

        Parameters
        ----------
        store:
            A :class:`~storyrank.lib.store.ContentStore` (or compatible).
        context:
            Viewer, follow set, bookmarks and exclusions for this request.
        num_candidates:
            Maximum number of candidates to return.

        Returns
        -------
        CandidateResult
        """
        ...

    def result(self, items: list[Candidate]) -> CandidateResult:
        """Wrap ``items`` in a result, tagging each with this generator's name."""
        return CandidateResult(
            generator_name=self.name,
            candidates=[i.model_copy(update={"generator_name": self.name}) for i in items],
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_generators: dict[str, CandidateGenerator] = {}


def register_generator(gen: CandidateGenerator) -> None:
    """Register a generator instance by its name."""
    _generators[gen.name] = gen


def get_generator(name: str) -> CandidateGenerator | None:
    """Look up a registered generator by name.  Returns ``None`` if not found."""
    return _generators.get(name)


def list_generators() -> list[str]:
    """Return the names of all registered generators."""
    return list(_generators.keys())
