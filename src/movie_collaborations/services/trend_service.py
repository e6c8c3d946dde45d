import logging
from typing import List
import pandas as pd
from sqlmodel import Session

from movie_collaborations.config import DIRECTOR_JOB
from movie_collaborations.data_access.collaboration_store import CollaborationStore
from movie_collaborations.data_access.credit_source import CreditSource
from movie_collaborations.domain.models.collaboration import RelatedMovie, YearlyCollaborationTrend
from .classifier_service import CAST

logger = logging.getLogger(__name__)

RELATED_TOP_CAST = 5
RELATED_CREW_JOBS = frozenset({DIRECTOR_JOB, "Writer", "Producer"})
RELATED_MAX_PEOPLE = 3
RELATED_MIN_SHARED = 2
RELATED_LIMIT = 8


class TrendAnalyzer:
    """Per-person yearly collaboration trends and collaboration-based related movies."""

    def __init__(self, session: Session):
        self.store = CollaborationStore(session)
        self.credit_source = CreditSource(session)

    def person_trends(self, person_id: int) -> List[YearlyCollaborationTrend]:
        """One entry per year the person collaborated, newest first.

        A collaborator is new in the first year they appear with the person.
        Rating and revenue are taken once per film.
        """
        details = self.store.get_person_details_frame(person_id)
        if details.empty:
            return []

        first_year = details.groupby("collaborator_id")["year"].min()
        details = details.assign(
            is_new=details["collaborator_id"].map(first_year) == details["year"],
            movie_rating=pd.to_numeric(details["movie_rating"], errors="coerce"),
            movie_revenue=pd.to_numeric(details["movie_revenue"], errors="coerce"),
        )
        films = details.drop_duplicates(["year", "movie_id"])
        genres = self.store.get_genre_ids(films["movie_id"].tolist())

        trends = []
        for year, group in details.groupby("year", sort=True):
            year_films = films[films["year"] == year]
            avg_rating = year_films["movie_rating"].mean()
            trends.append(YearlyCollaborationTrend(
                year=int(year),
                unique_collaborators=int(group["collaborator_id"].nunique()),
                new_collaborators=int(group.loc[group["is_new"], "collaborator_id"].nunique()),
                total_collaborations=int(year_films["movie_id"].nunique()),
                avg_rating=round(float(avg_rating), 1) if pd.notna(avg_rating) else None,
                total_revenue=int(year_films["movie_revenue"].fillna(0).sum()),
                genre_ids=sorted({g for movie_id in year_films["movie_id"] for g in genres.get(int(movie_id), [])}),
            ))
        trends.reverse()
        logger.debug(f"Person {person_id}: collaboration trends over {len(trends)} years")
        return trends

    def related_movies(self, movie_id: int) -> List[RelatedMovie]:
        """Movies sharing at least two of this movie's leading cast and key crew."""
        credits = self.credit_source.get_credits(movie_id)
        cast = sorted(
            (c for c in credits if c.role_kind == CAST),
            key=lambda c: (c.billing_order is None, c.billing_order or 0),
        )[:RELATED_TOP_CAST]
        crew = [c for c in credits if c.role_kind != CAST and c.job in RELATED_CREW_JOBS]

        person_ids = []
        for credit in cast + crew:
            if credit.person_id not in person_ids:
                person_ids.append(credit.person_id)
        person_ids = person_ids[:RELATED_MAX_PEOPLE]
        if len(person_ids) < RELATED_MIN_SHARED:
            return []

        shared = self.credit_source.get_shared_credits_frame(person_ids, exclude_movie_id=movie_id)
        if shared.empty:
            return []

        grouped = shared.groupby("movie_id", sort=False)
        movies = pd.DataFrame({
            "title": grouped["title"].first(),
            "release_date": grouped["release_date"].first(),
            "shared_count": grouped["person_id"].nunique(),
            "shared_names": grouped["name"].apply(lambda names: sorted(set(names))),
        }).reset_index()
        movies = movies[movies["shared_count"] >= RELATED_MIN_SHARED]
        movies = movies.assign(sort_date=pd.to_datetime(movies["release_date"]))
        movies = movies.sort_values(
            ["shared_count", "sort_date", "movie_id"],
            ascending=[False, False, True],
            na_position="last",
        ).head(RELATED_LIMIT)

        return [
            RelatedMovie(
                id=int(row.movie_id),
                title=row.title,
                release_date=row.release_date if pd.notna(row.release_date) else None,
                shared_count=int(row.shared_count),
                shared_names=row.shared_names,
                connection_reason=_connection_reason(int(row.shared_count), row.shared_names),
            )
            for row in movies.itertuples(index=False)
        ]


def _connection_reason(shared_count: int, names: List[str]) -> str:
    if shared_count <= 2:
        return f"Shares {' & '.join(names)}"
    return f"Shares {shared_count} cast/crew members"
