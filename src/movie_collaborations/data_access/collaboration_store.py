import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple
import pandas as pd
from sqlalchemy import select, delete, func, or_, exists, case, insert as generic_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from movie_collaborations.data_access.models.collaboration import Collaboration, CollaborationDetail, utc_now
from movie_collaborations.data_access.models.source import Movie, MovieGenre, Person
from movie_collaborations.domain.models.accumulator import DetailObservation, EdgeTotals
from movie_collaborations.domain.models.collaboration import CollaborationType

logger = logging.getLogger(__name__)

PAIR_COLUMNS = ["person_a_id", "person_b_id"]
DETAIL_COLUMNS = ["collaboration_id", "movie_id"]
PERSON_DETAIL_COLUMNS = ["year", "collaborator_id", "movie_id", "movie_rating", "movie_revenue"]


def order_person_ids(person_a_id: int, person_b_id: int) -> Tuple[int, int]:
    """Canonical (lower, higher) ordering of a pair."""
    if person_a_id < person_b_id:
        return person_a_id, person_b_id
    return person_b_id, person_a_id


class CollaborationStore:
    """Persistence for collaboration edges and their per-film details."""

    def __init__(self, session: Session):
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def _insert(self, table):
        if self.dialect == "postgresql":
            return pg_insert(table)
        if self.dialect == "sqlite":
            return sqlite_insert(table)
        return None

    # -- edges ---------------------------------------------------------------

    def get_edge(self, person_a_id: int, person_b_id: int, lock: bool = False) -> Optional[Collaboration]:
        low, high = order_person_ids(person_a_id, person_b_id)
        stmt = select(Collaboration).where(
            Collaboration.person_a_id == low, Collaboration.person_b_id == high
        )
        if lock:
            # Serializes concurrent updates of the same edge (no-op on SQLite)
            stmt = stmt.with_for_update()
        return self.session.exec(stmt).scalars().first()

    def try_insert_edge(self, person_a_id: int, person_b_id: int, totals: EdgeTotals) -> Optional[int]:
        """Insert a new edge; returns its id, or None when the pair already exists."""
        if person_a_id >= person_b_id:
            raise ValueError(f"Pair must be canonical, got ({person_a_id}, {person_b_id})")

        now = utc_now()
        values = {
            "person_a_id": person_a_id,
            "person_b_id": person_b_id,
            **_totals_to_values(totals),
            "created_at": now,
            "updated_at": now,
        }

        stmt = self._insert(Collaboration.__table__)
        if stmt is not None:
            stmt = stmt.values(values).on_conflict_do_nothing(index_elements=PAIR_COLUMNS)
            stmt = stmt.returning(Collaboration.__table__.c.id)
            return self.session.exec(stmt).scalar_one_or_none()

        # Other dialects: rely on the unique constraint inside a savepoint
        try:
            with self.session.begin_nested():
                result = self.session.exec(generic_insert(Collaboration.__table__).values(values))
                return result.inserted_primary_key[0]
        except IntegrityError:
            return None

    def update_edge(self, edge: Collaboration, totals: EdgeTotals) -> Collaboration:
        for key, value in _totals_to_values(totals).items():
            setattr(edge, key, value)
        edge.updated_at = utc_now()
        self.session.add(edge)
        self.session.flush()
        return edge

    def count_edges(self) -> int:
        return self.session.exec(select(func.count()).select_from(Collaboration)).scalar_one()

    def count_details(self) -> int:
        return self.session.exec(select(func.count()).select_from(CollaborationDetail)).scalar_one()

    def delete_all(self) -> Tuple[int, int]:
        """Delete every detail, then every edge. Returns (details, edges) deleted."""
        details = self.session.exec(delete(CollaborationDetail)).rowcount
        edges = self.session.exec(delete(Collaboration)).rowcount
        logger.info(f"Cleared {details} collaboration details and {edges} collaborations")
        return details, edges

    # -- details -------------------------------------------------------------

    def get_detail_movie_ids(self, collaboration_id: int) -> Set[int]:
        stmt = select(CollaborationDetail.movie_id).where(CollaborationDetail.collaboration_id == collaboration_id)
        return set(self.session.exec(stmt).scalars())

    def get_details(self, collaboration_id: int) -> List[CollaborationDetail]:
        stmt = (
            select(CollaborationDetail)
            .where(CollaborationDetail.collaboration_id == collaboration_id)
            .order_by(CollaborationDetail.year, CollaborationDetail.movie_id)
        )
        return list(self.session.exec(stmt).scalars())

    def insert_details(self, collaboration_id: int, details: Iterable[DetailObservation]) -> Set[int]:
        """Insert detail rows, ignoring (edge, film) pairs that already exist.

        Returns the movie ids that were actually inserted.
        """
        records = [
            {
                "collaboration_id": collaboration_id,
                "movie_id": d.movie_id,
                "collaboration_type": d.collaboration_type.value,
                "year": d.year,
                "movie_rating": d.movie_rating,
                "movie_revenue": d.movie_revenue,
            }
            for d in details
        ]
        if not records:
            return set()

        stmt = self._insert(CollaborationDetail.__table__)
        if stmt is not None:
            stmt = stmt.values(records).on_conflict_do_nothing(index_elements=DETAIL_COLUMNS)
            stmt = stmt.returning(CollaborationDetail.__table__.c.movie_id)
            return set(self.session.exec(stmt).scalars())

        known = self.get_detail_movie_ids(collaboration_id)
        fresh = [r for r in records if r["movie_id"] not in known]
        if fresh:
            self.session.exec(generic_insert(CollaborationDetail.__table__).values(fresh))
        return {r["movie_id"] for r in fresh}

    # -- read queries --------------------------------------------------------

    def find_similar(self, original: Collaboration, limit: int = 10) -> List[Collaboration]:
        has_actor_director = exists().where(
            CollaborationDetail.collaboration_id == Collaboration.id,
            CollaborationDetail.collaboration_type == CollaborationType.ACTOR_DIRECTOR.value,
        )
        stmt = (
            select(Collaboration)
            .where(Collaboration.id != original.id)
            .where(Collaboration.collaboration_count >= 2)
            .where(has_actor_director)
        )
        if original.avg_movie_rating is not None:
            distance = func.abs(Collaboration.avg_movie_rating - original.avg_movie_rating)
            stmt = stmt.order_by(
                Collaboration.avg_movie_rating.is_(None),
                distance,
                Collaboration.collaboration_count.desc(),
                Collaboration.id,
            )
        else:
            stmt = stmt.order_by(Collaboration.collaboration_count.desc(), Collaboration.id)
        return list(self.session.exec(stmt.limit(limit)).scalars())

    def find_frequent_partners(self, person_id: int, min_count: int = 2, limit: int = 20,
                               collaboration_type: Optional[str] = None) -> List[Tuple[Person, Collaboration]]:
        partner_id = func.coalesce(
            func.nullif(Collaboration.person_a_id, person_id),
            Collaboration.person_b_id,
        )
        stmt = (
            select(Person, Collaboration)
            .select_from(Collaboration)
            .join(Person, Person.id == partner_id)
            .where(or_(Collaboration.person_a_id == person_id, Collaboration.person_b_id == person_id))
            .where(Collaboration.collaboration_count >= min_count)
        )
        if collaboration_type:
            stmt = stmt.where(exists().where(
                CollaborationDetail.collaboration_id == Collaboration.id,
                CollaborationDetail.collaboration_type == collaboration_type,
            ))
        stmt = stmt.order_by(
            Collaboration.collaboration_count.desc(),
            Collaboration.avg_movie_rating.is_(None),
            Collaboration.avg_movie_rating.desc(),
            Collaboration.id,
        ).limit(limit)
        return [(row[0], row[1]) for row in self.session.exec(stmt).all()]

    def find_movies_for_pair(self, person_a_id: int, person_b_id: int,
                             collaboration_type: Optional[str] = None) -> List[Movie]:
        low, high = order_person_ids(person_a_id, person_b_id)
        stmt = (
            select(Movie)
            .join(CollaborationDetail, CollaborationDetail.movie_id == Movie.id)
            .join(Collaboration, Collaboration.id == CollaborationDetail.collaboration_id)
            .where(Collaboration.person_a_id == low, Collaboration.person_b_id == high)
        )
        if collaboration_type:
            stmt = stmt.where(CollaborationDetail.collaboration_type == collaboration_type)
        stmt = stmt.order_by(Movie.release_date.desc(), Movie.id.desc())
        return list(self.session.exec(stmt).scalars())

    def find_trending(self, start_year: int, limit: int = 20) -> List[Collaboration]:
        stmt = (
            select(Collaboration)
            .join(CollaborationDetail, CollaborationDetail.collaboration_id == Collaboration.id)
            .where(CollaborationDetail.year >= start_year)
            .where(Collaboration.first_collaboration_date >= date(start_year, 1, 1))
            .group_by(Collaboration.id)
            .having(func.count(CollaborationDetail.id) >= 2)
            .order_by(
                func.avg(CollaborationDetail.movie_revenue).desc(),
                func.avg(CollaborationDetail.movie_rating).desc(),
                Collaboration.id,
            )
            .limit(limit)
        )
        return list(self.session.exec(stmt).scalars())

    def count_distinct_genres(self, movie_ids: Iterable[int]) -> int:
        ids = list(set(movie_ids))
        if not ids:
            return 0
        stmt = select(func.count(func.distinct(MovieGenre.genre_id))).where(MovieGenre.movie_id.in_(ids))
        return self.session.exec(stmt).scalar_one() or 0

    def get_edge_ids(self) -> List[int]:
        return list(self.session.exec(select(Collaboration.id).order_by(Collaboration.id)).scalars())

    def get_person_details_frame(self, person_id: int) -> pd.DataFrame:
        """Every detail of every edge touching ``person_id``, seen from that person."""
        collaborator = case(
            (Collaboration.person_a_id == person_id, Collaboration.person_b_id),
            else_=Collaboration.person_a_id,
        )
        stmt = (
            select(
                CollaborationDetail.year,
                collaborator.label("collaborator_id"),
                CollaborationDetail.movie_id,
                CollaborationDetail.movie_rating,
                CollaborationDetail.movie_revenue,
            )
            .join(Collaboration, Collaboration.id == CollaborationDetail.collaboration_id)
            .where(or_(Collaboration.person_a_id == person_id, Collaboration.person_b_id == person_id))
            .order_by(CollaborationDetail.year, CollaborationDetail.movie_id)
        )
        rows = self.session.exec(stmt).all()
        return pd.DataFrame([tuple(r) for r in rows], columns=PERSON_DETAIL_COLUMNS)

    def get_genre_ids(self, movie_ids: Iterable[int]) -> Dict[int, List[int]]:
        ids = list(set(movie_ids))
        if not ids:
            return {}
        stmt = (
            select(MovieGenre.movie_id, MovieGenre.genre_id)
            .where(MovieGenre.movie_id.in_(ids))
            .order_by(MovieGenre.movie_id, MovieGenre.genre_id)
        )
        genres: Dict[int, List[int]] = {}
        for movie_id, genre_id in self.session.exec(stmt).all():
            genres.setdefault(movie_id, []).append(genre_id)
        return genres


def _totals_to_values(totals: EdgeTotals) -> dict:
    return {
        "collaboration_count": totals.collaboration_count,
        "first_collaboration_date": totals.first_collaboration_date,
        "latest_collaboration_date": totals.latest_collaboration_date,
        "avg_movie_rating": totals.avg_movie_rating,
        "rated_count": totals.rated_count,
        "total_revenue": totals.total_revenue,
        "years_active": list(totals.years_active),
    }


def totals_from_edge(edge: Collaboration) -> EdgeTotals:
    return EdgeTotals(
        collaboration_count=edge.collaboration_count,
        first_collaboration_date=edge.first_collaboration_date,
        latest_collaboration_date=edge.latest_collaboration_date,
        avg_movie_rating=edge.avg_movie_rating,
        rated_count=edge.rated_count,
        total_revenue=edge.total_revenue or 0,
        years_active=list(edge.years_active or []),
    )
