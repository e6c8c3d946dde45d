import logging
from dataclasses import dataclass
from typing import List, Sequence
import pandas as pd
from sqlalchemy.exc import DataError, IntegrityError
from sqlmodel import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from movie_collaborations.config import CollaborationSettings
from movie_collaborations.data_access.collaboration_store import CollaborationStore, totals_from_edge
from movie_collaborations.domain.errors import MalformedObservation, TransientConflict
from movie_collaborations.domain.models.accumulator import DetailObservation, PairAccumulator
from movie_collaborations.domain.models.collaboration import CollaborationType
from .pair_extractor_service import PairExtractor

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"


@dataclass
class AggregationStats:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0

    def record(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def add(self, other: "AggregationStats") -> "AggregationStats":
        return AggregationStats(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            unchanged=self.unchanged + other.unchanged,
            skipped=self.skipped + other.skipped,
        )


class EdgeAggregator:
    def __init__(self, session: Session, extractor: PairExtractor, settings: CollaborationSettings = None):
        """Initialize the EdgeAggregator on an open session; the caller owns commit/rollback."""
        self.session = session
        self.extractor = extractor
        self.settings = settings or CollaborationSettings()
        self.store = CollaborationStore(session)

    def aggregate_movies(self, movie_ids: Sequence[int]) -> AggregationStats:
        """Extract and fold every batch of ``movie_ids`` into the edge store."""
        stats = AggregationStats()
        for _, observations in self.extractor.iter_observation_batches(movie_ids):
            stats = stats.add(self.aggregate(observations))
        logger.info(
            f"Aggregated {len(movie_ids)} movies: {stats.created} created, {stats.updated} updated, "
            f"{stats.unchanged} unchanged, {stats.skipped} skipped"
        )
        return stats

    def aggregate(self, observations: pd.DataFrame) -> AggregationStats:
        """Fold one batch of pair observations into the store, one pair group at a time."""
        stats = AggregationStats()
        for acc in build_accumulators(observations):
            stats.record(self._aggregate_group(acc))
        return stats

    def _aggregate_group(self, acc: PairAccumulator) -> str:
        pair = (acc.person_a_id, acc.person_b_id)
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self.settings.conflict_retry_attempts),
                retry=retry_if_exception_type(TransientConflict),
                wait=wait_exponential(multiplier=0.05, max=0.5),
                reraise=True,
            ):
                with attempt:
                    with self.session.begin_nested():
                        return self._upsert_group(acc)
        except TransientConflict:
            logger.warning(
                f"Giving up on pair {pair} after {self.settings.conflict_retry_attempts} conflicting inserts; "
                f"movies {sorted(acc.movie_ids)} not aggregated"
            )
            return SKIPPED
        except (IntegrityError, DataError) as e:
            error = MalformedObservation(str(e.orig), movie_id=sorted(acc.movie_ids), person_ids=pair)
            logger.warning(f"Skipping pair {pair} for movies {error.movie_id}: {error}")
            return SKIPPED

    def _upsert_group(self, acc: PairAccumulator) -> str:
        edge = self.store.get_edge(acc.person_a_id, acc.person_b_id, lock=True)
        if edge is None:
            edge_id = self.store.try_insert_edge(acc.person_a_id, acc.person_b_id, acc.to_totals())
            if edge_id is None:
                raise TransientConflict(acc.person_a_id, acc.person_b_id)
            self.store.insert_details(edge_id, acc.details.values())
            return CREATED

        # Details first: only films whose detail row is new get folded into the totals
        inserted = self.store.insert_details(edge.id, acc.details.values())
        if not inserted:
            return UNCHANGED
        self.store.update_edge(edge, totals_from_edge(edge).merge(acc.restricted_to(inserted)))
        return UPDATED


def build_accumulators(observations: pd.DataFrame) -> List[PairAccumulator]:
    """Group observations by canonical pair into accumulators, in pair order."""
    if observations.empty:
        return []
    accumulators = []
    for (person_a_id, person_b_id), group in observations.groupby(["person_a_id", "person_b_id"], sort=True):
        accumulators.append(PairAccumulator.from_observations(
            int(person_a_id),
            int(person_b_id),
            (
                DetailObservation(
                    movie_id=int(row.movie_id),
                    collaboration_type=CollaborationType(row.collaboration_type),
                    year=int(row.year),
                    release_date=row.release_date,
                    movie_rating=float(row.rating) if row.rating is not None else None,
                    movie_revenue=int(row.revenue) if row.revenue is not None else None,
                )
                for row in group.itertuples(index=False)
            ),
        ))
    return accumulators
