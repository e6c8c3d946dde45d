import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlmodel import Session

from movie_collaborations.config import CollaborationSettings, DIRECTOR_JOB
from movie_collaborations.data_access.collaboration_store import CollaborationStore
from movie_collaborations.data_access.credit_source import CreditSource
from movie_collaborations.data_access.database import get_db_engine
from movie_collaborations.data_access.models.collaboration import Collaboration
from movie_collaborations.data_access.models.source import Movie, Person
from movie_collaborations.domain.errors import AggregationFailure, StoreUnavailable
from movie_collaborations.domain.models.collaboration import (
    CollaborationType, DiversityStats, KeyCollaboration, KeyCollaborations, PathResult, PathWithMovies,
    RelatedMovie, YearlyCollaborationTrend,
)
from .classifier_service import CAST
from .diversity_service import DiversityCalculator
from .edge_aggregator_service import AggregationStats, EdgeAggregator
from .pair_extractor_service import PairExtractor
from .path_finder_service import DatabasePathCache, MemoryPathCache, PathCache, PathFinder
from .rebuild_lock import RebuildLock, rebuild_lock
from .similarity_service import SimilarityRanker
from .trend_service import TrendAnalyzer

logger = logging.getLogger(__name__)

KEY_COLLABORATION_TOP_CAST = 10
KEY_COLLABORATION_LIMIT = 6


class CollaborationService:
    """Entry point for building and querying the collaboration graph."""

    def __init__(self, engine: Engine = None, settings: CollaborationSettings = None,
                 memory_cache: Optional[MemoryPathCache] = None, lock: RebuildLock = None):
        self.engine = engine or get_db_engine()
        self.settings = settings or CollaborationSettings.from_env()
        self.lock = lock or rebuild_lock
        if self.settings.path_cache_backend == "memory":
            self.memory_cache = memory_cache or MemoryPathCache(self.settings.path_cache_ttl)
        else:
            self.memory_cache = None

    @contextmanager
    def _store_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Database unavailable during {action}: {str(e)}")
            raise StoreUnavailable(f"Database unavailable during {action}") from e

    def _aggregator(self, session: Session, credit_source: CreditSource) -> EdgeAggregator:
        return EdgeAggregator(session, PairExtractor(credit_source, self.settings), self.settings)

    # -- aggregation ---------------------------------------------------------

    def rebuild_all(self) -> int:
        """Delete every edge and detail and re-aggregate all movies in one transaction.

        Returns the number of edges afterwards. Any failure rolls the whole
        rebuild back, leaving the previous edges in place.
        """
        logger.info("Starting full collaboration rebuild")
        with self._store_errors("collaboration rebuild"):
            with Session(self.engine) as session:
                with self.lock.exclusive(session):
                    try:
                        store = CollaborationStore(session)
                        store.delete_all()
                        credit_source = CreditSource(session)
                        movie_ids = credit_source.get_all_movie_ids()
                        self._aggregator(session, credit_source).aggregate_movies(movie_ids)
                        edge_count = store.count_edges()
                        session.commit()
                    except (OperationalError, InterfaceError):
                        session.rollback()
                        raise
                    except Exception as e:
                        session.rollback()
                        logger.error(f"Collaboration rebuild failed and was rolled back: {str(e)}")
                        raise AggregationFailure(f"Collaboration rebuild failed: {str(e)}") from e
        logger.info(f"Rebuilt collaborations for {len(movie_ids)} movies: {edge_count} edges")
        return edge_count

    populate_collaborations = rebuild_all

    def rebuild_for_movie(self, movie_id: int) -> int:
        """Aggregate one movie's credits into the graph; returns the number of edges created."""
        stats = self._aggregate_committed([movie_id])
        logger.info(f"Movie {movie_id}: {stats.created} collaborations created, {stats.updated} updated")
        return stats.created

    populate_for_movie = rebuild_for_movie

    def populate_for_movies(self, movie_ids: Sequence[int], workers: int = 4) -> int:
        """Incrementally aggregate many movies on worker threads, each with its own session.

        Returns the number of edges created.
        """
        movie_ids = list(movie_ids)
        if not movie_ids:
            return 0
        chunk_size = max(1, -(-len(movie_ids) // workers))
        chunks = [movie_ids[i:i + chunk_size] for i in range(0, len(movie_ids), chunk_size)]

        threads = []
        results: List[AggregationStats] = []
        exceptions: List[Exception] = []
        for chunk in chunks:
            thread = threading.Thread(target=self._aggregate_chunk, args=(chunk, results, exceptions))
            threads.append(thread)
            thread.start()

        for thread in threads:
            thread.join()

        if exceptions:
            raise exceptions[0]

        total = AggregationStats()
        for stats in results:
            total = total.add(stats)
        logger.info(f"Aggregated {len(movie_ids)} movies with {len(threads)} threads: {total.created} edges created")
        return total.created

    def _aggregate_chunk(self, chunk: List[int], results: List[AggregationStats],
                         exceptions: List[Exception]) -> None:
        try:
            results.append(self._aggregate_committed(chunk))
        except Exception as e:
            exceptions.append(e)

    def _aggregate_committed(self, movie_ids: List[int]) -> AggregationStats:
        with self._store_errors(f"aggregation of movies {movie_ids}"):
            with Session(self.engine) as session:
                with self.lock.shared(session):
                    try:
                        stats = self._aggregator(session, CreditSource(session)).aggregate_movies(movie_ids)
                        session.commit()
                    except Exception as e:
                        session.rollback()
                        logger.error(f"Aggregation of movies {movie_ids} failed: {str(e)}")
                        raise
        return stats

    def update_all_diversity_scores(self) -> int:
        with self._store_errors("diversity update"):
            with Session(self.engine) as session:
                updated = DiversityCalculator(session).update_all_diversity_scores()
                session.commit()
        return updated

    def diversity_stats(self) -> DiversityStats:
        with self._store_errors("diversity stats"):
            with Session(self.engine) as session:
                return DiversityCalculator(session).diversity_stats()

    # -- queries -------------------------------------------------------------

    def get_edge(self, person_a_id: int, person_b_id: int) -> Optional[Collaboration]:
        with self._store_errors("edge lookup"):
            with Session(self.engine) as session:
                return CollaborationStore(session).get_edge(person_a_id, person_b_id)

    def find_shortest_path(self, person_a_id: int, person_b_id: int, max_depth: Optional[int] = None,
                           time_budget: Optional[float] = None) -> PathResult:
        """Raises PathNotFound or PathSearchTimeout; successful searches are cached."""
        with self._store_errors("path search"):
            with Session(self.engine) as session:
                result = self._path_finder(session).find_shortest_path(
                    person_a_id, person_b_id, max_depth=max_depth, time_budget=time_budget
                )
                session.commit()
        return result

    def find_path_with_movies(self, person_a_id: int, person_b_id: int,
                              max_depth: Optional[int] = None) -> PathWithMovies:
        with self._store_errors("path search"):
            with Session(self.engine) as session:
                result = self._path_finder(session).find_path_with_movies(person_a_id, person_b_id, max_depth=max_depth)
                session.commit()
        return result

    def _path_finder(self, session: Session) -> PathFinder:
        cache: PathCache = self.memory_cache or DatabasePathCache(session, self.settings.path_cache_ttl)
        settings = self.settings
        if self.engine.dialect.name == "sqlite" and settings.path_search_workers > 1:
            # SQLite connections cannot serve concurrent transactions; search sequentially
            settings = settings.model_copy(update={"path_search_workers": 1})
        return PathFinder(CreditSource(session), cache, settings, engine=self.engine)

    def find_similar(self, person_a_id: int, person_b_id: int, limit: int = 10) -> List[Collaboration]:
        with self._store_errors("similarity search"):
            with Session(self.engine) as session:
                return SimilarityRanker(session).find_similar(person_a_id, person_b_id, limit=limit)

    def find_frequent_partners(self, person_id: int, min_count: int = 2, limit: int = 20,
                               collaboration_type: Optional[str] = None) -> List[Tuple[Person, Collaboration]]:
        with self._store_errors("frequent partners lookup"):
            with Session(self.engine) as session:
                return CollaborationStore(session).find_frequent_partners(
                    person_id, min_count=min_count, limit=limit, collaboration_type=collaboration_type
                )

    def find_actor_director_movies(self, actor_id: int, director_id: int) -> List[Movie]:
        with self._store_errors("actor-director movies lookup"):
            with Session(self.engine) as session:
                return CollaborationStore(session).find_movies_for_pair(
                    actor_id, director_id, collaboration_type=CollaborationType.ACTOR_DIRECTOR.value
                )

    def find_movies_for_pair(self, person_a_id: int, person_b_id: int) -> List[Movie]:
        with self._store_errors("pair movies lookup"):
            with Session(self.engine) as session:
                return CollaborationStore(session).find_movies_for_pair(person_a_id, person_b_id)

    def find_trending_collaborations(self, start_year: int, limit: int = 20) -> List[Collaboration]:
        with self._store_errors("trending collaborations lookup"):
            with Session(self.engine) as session:
                return CollaborationStore(session).find_trending(start_year, limit=limit)

    def get_person_collaboration_trends(self, person_id: int) -> List[YearlyCollaborationTrend]:
        with self._store_errors("collaboration trends lookup"):
            with Session(self.engine) as session:
                return TrendAnalyzer(session).person_trends(person_id)

    def get_related_movies_by_collaboration(self, movie_id: int) -> List[RelatedMovie]:
        with self._store_errors("related movies lookup"):
            with Session(self.engine) as session:
                return TrendAnalyzer(session).related_movies(movie_id)

    def get_key_collaborations(self, movie_id: int) -> KeyCollaborations:
        """Director/actor reunions and actor partnerships among a movie's credits."""
        with self._store_errors("key collaborations lookup"):
            with Session(self.engine) as session:
                credits = CreditSource(session).get_credits(movie_id)
                store = CollaborationStore(session)

                cast = sorted(
                    (c for c in credits if c.role_kind == CAST),
                    key=lambda c: (c.billing_order is None, c.billing_order or 0),
                )
                top_actors = _unique_people(c.person_id for c in cast)[:KEY_COLLABORATION_TOP_CAST]
                directors = _unique_people(c.person_id for c in credits if c.job == DIRECTOR_JOB)

                found = []
                for director_id in directors:
                    for actor_id in top_actors:
                        if actor_id == director_id:
                            continue
                        movies = store.find_movies_for_pair(
                            actor_id, director_id, collaboration_type=CollaborationType.ACTOR_DIRECTOR.value
                        )
                        if len(movies) > 1:
                            found.append(KeyCollaboration(
                                type=CollaborationType.ACTOR_DIRECTOR.value,
                                person_a_id=actor_id,
                                person_b_id=director_id,
                                collaboration_count=len(movies),
                            ))

                for i, actor_a in enumerate(top_actors):
                    for actor_b in top_actors[i + 1:]:
                        edge = store.get_edge(actor_a, actor_b)
                        if edge is not None and edge.collaboration_count > 1:
                            found.append(KeyCollaboration(
                                type=CollaborationType.ACTOR_ACTOR.value,
                                person_a_id=actor_a,
                                person_b_id=actor_b,
                                collaboration_count=edge.collaboration_count,
                            ))

        top = sorted(found, key=lambda k: k.collaboration_count, reverse=True)[:KEY_COLLABORATION_LIMIT]
        return KeyCollaborations(
            director_actor_reunions=[k for k in top if k.type == CollaborationType.ACTOR_DIRECTOR.value],
            actor_partnerships=[k for k in top if k.type == CollaborationType.ACTOR_ACTOR.value],
            total_reunions=len(top),
        )


def _unique_people(person_ids) -> List[int]:
    seen = []
    for person_id in person_ids:
        if person_id not in seen:
            seen.append(person_id)
    return seen
