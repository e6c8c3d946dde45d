"""
Shared pytest fixtures for movie_collaborations tests.

Every test gets a fresh in-memory SQLite database. Because the engine uses a
single shared connection, tests keep at most one session with an open
transaction at a time: builders commit, and assertions read through a new
session or through the service.
"""

from datetime import date
from typing import Dict, Iterable, Optional, Sequence

import pytest
from sqlmodel import Session

from movie_collaborations.config import CollaborationSettings
from movie_collaborations.data_access.database import create_db_engine, init_db
from movie_collaborations.data_access.models.source import Movie, MovieCredit, MovieGenre, Person
from movie_collaborations.services.collaboration_service import CollaborationService
from movie_collaborations.services.rebuild_lock import RebuildLock


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite engine with all tables created."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Session on the test engine, closed after the test."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings():
    """Default settings with the database path cache."""
    return CollaborationSettings()


@pytest.fixture
def service(engine, settings):
    """CollaborationService on the test engine with its own rebuild lock."""
    return CollaborationService(engine, settings=settings, lock=RebuildLock())


# =============================================================================
# Data Builders
# =============================================================================


@pytest.fixture
def make_movie(engine):
    """Insert a movie with its credits and commit; returns the movie id.

    ``cast`` is a list of person ids in billing order; ``crew`` maps a job
    title to the person ids holding it. People are created on first use.
    """

    def _make_movie(
        movie_id: int,
        cast: Sequence[int] = (),
        directors: Sequence[int] = (),
        crew: Optional[Dict[str, Iterable[int]]] = None,
        release_date: Optional[date] = date(2000, 1, 1),
        rating: Optional[float] = 7.0,
        revenue: Optional[int] = 1_000_000,
        genres: Sequence[int] = (),
        title: Optional[str] = None,
    ) -> int:
        crew_rows = [("Director", person_id) for person_id in directors]
        for job, person_ids in (crew or {}).items():
            crew_rows.extend((job, person_id) for person_id in person_ids)

        with Session(engine) as session:
            people = set(cast) | {person_id for _, person_id in crew_rows}
            for person_id in sorted(people):
                if session.get(Person, person_id) is None:
                    session.add(Person(id=person_id, name=f"Person {person_id}"))
            session.add(Movie(
                id=movie_id,
                title=title or f"Movie {movie_id}",
                release_date=release_date,
                vote_average=rating,
                revenue=revenue,
            ))
            session.flush()
            for order, person_id in enumerate(cast):
                session.add(MovieCredit(
                    movie_id=movie_id, person_id=person_id, credit_type="cast",
                    cast_order=order, department="Acting", character=f"Role {order}",
                ))
            for job, person_id in crew_rows:
                department = "Directing" if job == "Director" else "Production"
                session.add(MovieCredit(
                    movie_id=movie_id, person_id=person_id, credit_type="crew",
                    department=department, job=job,
                ))
            for genre_id in genres:
                session.add(MovieGenre(movie_id=movie_id, genre_id=genre_id))
            session.commit()
        return movie_id

    return _make_movie
