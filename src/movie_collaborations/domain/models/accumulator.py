from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from movie_collaborations.domain.models.collaboration import CollaborationType


@dataclass
class DetailObservation:
    movie_id: int
    collaboration_type: CollaborationType
    year: int
    release_date: date
    movie_rating: Optional[float] = None
    movie_revenue: Optional[int] = None


@dataclass
class EdgeTotals:
    """Aggregate state of one edge, as stored on the collaborations row."""
    collaboration_count: int = 0
    first_collaboration_date: Optional[date] = None
    latest_collaboration_date: Optional[date] = None
    avg_movie_rating: Optional[float] = None
    rated_count: int = 0
    total_revenue: int = 0
    years_active: List[int] = field(default_factory=list)

    def merge(self, acc: "PairAccumulator") -> "EdgeTotals":
        """Fold the films of ``acc`` into these totals.

        The caller is responsible for passing only films not yet folded in;
        the running mean is weighted by the number of rated films on each side.
        """
        if not acc.movie_ids:
            return replace(self, years_active=list(self.years_active))

        if acc.rating_count == 0:
            avg = self.avg_movie_rating
            rated = self.rated_count
        elif self.avg_movie_rating is None or self.rated_count == 0:
            avg = acc.avg_rating
            rated = acc.rating_count
        else:
            rated = self.rated_count + acc.rating_count
            avg = (self.avg_movie_rating * self.rated_count + acc.rating_sum) / rated

        return EdgeTotals(
            collaboration_count=self.collaboration_count + len(acc.movie_ids),
            first_collaboration_date=_min_date(self.first_collaboration_date, acc.first_date),
            latest_collaboration_date=_max_date(self.latest_collaboration_date, acc.latest_date),
            avg_movie_rating=avg,
            rated_count=rated,
            total_revenue=self.total_revenue + acc.revenue_sum,
            years_active=sorted(set(self.years_active) | acc.years),
        )


@dataclass
class PairAccumulator:
    """Per-pair fold over extracted observations, one entry per film."""
    person_a_id: int
    person_b_id: int
    details: Dict[int, DetailObservation] = field(default_factory=dict)

    def __post_init__(self):
        if self.person_a_id >= self.person_b_id:
            raise ValueError(f"Pair must be canonical, got ({self.person_a_id}, {self.person_b_id})")

    def add(self, observation: DetailObservation) -> None:
        current = self.details.get(observation.movie_id)
        if current is None or observation.collaboration_type.precedence < current.collaboration_type.precedence:
            self.details[observation.movie_id] = observation

    @classmethod
    def from_observations(cls, person_a_id: int, person_b_id: int,
                          observations: Iterable[DetailObservation]) -> "PairAccumulator":
        acc = cls(person_a_id, person_b_id)
        for observation in observations:
            acc.add(observation)
        return acc

    def restricted_to(self, movie_ids: Iterable[int]) -> "PairAccumulator":
        wanted = set(movie_ids)
        return PairAccumulator(
            self.person_a_id,
            self.person_b_id,
            {movie_id: d for movie_id, d in self.details.items() if movie_id in wanted},
        )

    @property
    def movie_ids(self) -> Set[int]:
        return set(self.details)

    @property
    def first_date(self) -> Optional[date]:
        return min((d.release_date for d in self.details.values()), default=None)

    @property
    def latest_date(self) -> Optional[date]:
        return max((d.release_date for d in self.details.values()), default=None)

    @property
    def ratings(self) -> List[float]:
        return [d.movie_rating for d in self.details.values() if d.movie_rating is not None]

    @property
    def rating_sum(self) -> float:
        return sum(self.ratings)

    @property
    def rating_count(self) -> int:
        return len(self.ratings)

    @property
    def avg_rating(self) -> Optional[float]:
        ratings = self.ratings
        return sum(ratings) / len(ratings) if ratings else None

    @property
    def revenue_sum(self) -> int:
        return sum(d.movie_revenue or 0 for d in self.details.values())

    @property
    def years(self) -> Set[int]:
        return {d.year for d in self.details.values() if d.year is not None}

    def to_totals(self) -> EdgeTotals:
        return EdgeTotals().merge(self)


def _min_date(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _max_date(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)
