import logging
from typing import List, Optional, Sequence
import pandas as pd
from sqlalchemy import select, and_, extract
from sqlalchemy.orm import aliased
from sqlmodel import Session

from movie_collaborations.data_access.models.source import Movie, MovieCredit, Person
from movie_collaborations.domain.models.collaboration import ConnectingMovie, CreditRow, MovieFact

logger = logging.getLogger(__name__)

CREDIT_COLUMNS = ["movie_id", "person_id", "role_kind", "billing_order", "department", "job"]
FACT_COLUMNS = ["movie_id", "release_date", "rating", "revenue"]
SHARED_CREDIT_COLUMNS = ["movie_id", "title", "release_date", "person_id", "name"]


class CreditSource:
    """Read access to the imported credit and movie tables."""

    def __init__(self, session: Session):
        self.session = session

    def get_all_movie_ids(self) -> List[int]:
        return list(self.session.exec(select(Movie.id).order_by(Movie.id)).scalars())

    def get_credits(self, movie_id: int) -> List[CreditRow]:
        credits = self.session.exec(
            select(MovieCredit).where(MovieCredit.movie_id == movie_id).order_by(MovieCredit.id)
        ).scalars()
        return [
            CreditRow(
                movie_id=c.movie_id,
                person_id=c.person_id,
                role_kind=c.credit_type,
                billing_order=c.cast_order,
                department=c.department,
                job=c.job,
                character=c.character,
            )
            for c in credits
        ]

    def get_movie_fact(self, movie_id: int) -> Optional[MovieFact]:
        movie = self.session.get(Movie, movie_id)
        if movie is None:
            return None
        return MovieFact(
            movie_id=movie.id,
            title=movie.title,
            release_date=movie.release_date,
            audience_rating=movie.vote_average,
            revenue=movie.revenue,
        )

    def get_credits_frame(self, movie_ids: Sequence[int]) -> pd.DataFrame:
        """Credit rows for a batch of movies as a DataFrame with CREDIT_COLUMNS."""
        if not movie_ids:
            return pd.DataFrame(columns=CREDIT_COLUMNS)
        stmt = (
            select(
                MovieCredit.movie_id,
                MovieCredit.person_id,
                MovieCredit.credit_type.label("role_kind"),
                MovieCredit.cast_order.label("billing_order"),
                MovieCredit.department,
                MovieCredit.job,
            )
            .where(MovieCredit.movie_id.in_(list(movie_ids)))
            .order_by(MovieCredit.movie_id, MovieCredit.id)
        )
        rows = self.session.exec(stmt).all()
        return pd.DataFrame([tuple(r) for r in rows], columns=CREDIT_COLUMNS)

    def get_movie_facts_frame(self, movie_ids: Sequence[int]) -> pd.DataFrame:
        """Release date, rating and revenue per movie as a DataFrame with FACT_COLUMNS."""
        if not movie_ids:
            return pd.DataFrame(columns=FACT_COLUMNS)
        stmt = (
            select(Movie.id, Movie.release_date, Movie.vote_average, Movie.revenue)
            .where(Movie.id.in_(list(movie_ids)))
            .order_by(Movie.id)
        )
        rows = self.session.exec(stmt).all()
        return pd.DataFrame([tuple(r) for r in rows], columns=FACT_COLUMNS)

    def get_connected_people(self, person_id: int) -> List[int]:
        """Everyone sharing at least one credited movie with ``person_id``."""
        mc1 = aliased(MovieCredit)
        mc2 = aliased(MovieCredit)
        stmt = (
            select(mc2.person_id)
            .join(mc1, mc1.movie_id == mc2.movie_id)
            .where(mc1.person_id == person_id, mc2.person_id != person_id)
            .distinct()
            .order_by(mc2.person_id)
        )
        return list(self.session.exec(stmt).scalars())

    def find_connecting_movie(self, person_a_id: int, person_b_id: int) -> Optional[ConnectingMovie]:
        mc1 = aliased(MovieCredit)
        mc2 = aliased(MovieCredit)
        stmt = (
            select(Movie.id, Movie.title, extract("year", Movie.release_date).label("year"))
            .join(mc1, mc1.movie_id == Movie.id)
            .join(mc2, mc2.movie_id == Movie.id)
            .where(and_(mc1.person_id == person_a_id, mc2.person_id == person_b_id))
            .order_by(Movie.release_date, Movie.id)
            .limit(1)
        )
        row = self.session.exec(stmt).first()
        if row is None:
            return None
        return ConnectingMovie(id=row.id, title=row.title, year=int(row.year) if row.year is not None else None)

    def get_shared_credits_frame(self, person_ids: Sequence[int], exclude_movie_id: int) -> pd.DataFrame:
        """Other movies crediting any of ``person_ids``, one row per (movie, person)."""
        if not person_ids:
            return pd.DataFrame(columns=SHARED_CREDIT_COLUMNS)
        stmt = (
            select(Movie.id, Movie.title, Movie.release_date, MovieCredit.person_id, Person.name)
            .join(MovieCredit, MovieCredit.movie_id == Movie.id)
            .join(Person, Person.id == MovieCredit.person_id)
            .where(MovieCredit.person_id.in_(list(person_ids)), Movie.id != exclude_movie_id)
            .distinct()
            .order_by(Movie.id, MovieCredit.person_id)
        )
        rows = self.session.exec(stmt).all()
        return pd.DataFrame([tuple(r) for r in rows], columns=SHARED_CREDIT_COLUMNS)
