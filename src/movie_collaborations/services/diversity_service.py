import logging
from collections import Counter
from typing import Optional
from sqlalchemy import case, func, select
from sqlmodel import Session

from movie_collaborations.data_access.collaboration_store import CollaborationStore
from movie_collaborations.data_access.models.collaboration import Collaboration, utc_now
from movie_collaborations.domain.models.collaboration import CollaborationType, DiversityStats

logger = logging.getLogger(__name__)

# Scores saturate at these many distinct collaboration types / genres
ROLE_DIVERSITY_SCALE = 5
GENRE_DIVERSITY_SCALE = 10
HIGH_DIVERSITY_THRESHOLD = 0.7


class DiversityCalculator:
    """Role/genre diversity and peak year of collaborations."""

    def __init__(self, session: Session):
        self.session = session
        self.store = CollaborationStore(session)

    def update_diversity_scores(self, edge: Collaboration) -> Collaboration:
        details = self.store.get_details(edge.id)
        if not details:
            return edge

        types = {d.collaboration_type for d in details if d.collaboration_type != CollaborationType.OTHER.value}
        genres = self.store.count_distinct_genres(d.movie_id for d in details)

        edge.role_diversity_score = min(len(types) / ROLE_DIVERSITY_SCALE, 1.0)
        edge.genre_diversity_score = min(genres / GENRE_DIVERSITY_SCALE, 1.0)
        edge.peak_year = peak_year(d.year for d in details)
        edge.updated_at = utc_now()
        self.session.add(edge)
        self.session.flush()
        return edge

    def update_all_diversity_scores(self) -> int:
        """Recompute scores for every edge; the caller commits."""
        updated = 0
        for edge_id in self.store.get_edge_ids():
            edge = self.session.get(Collaboration, edge_id)
            if edge is None:
                continue
            self.update_diversity_scores(edge)
            updated += 1
            if updated % 1000 == 0:
                logger.info(f"Updated diversity scores for {updated} collaborations")
        logger.info(f"Updated diversity scores for {updated} collaborations")
        return updated

    def diversity_stats(self) -> DiversityStats:
        stmt = select(
            func.count(Collaboration.id),
            func.avg(Collaboration.genre_diversity_score),
            func.avg(Collaboration.role_diversity_score),
            func.sum(_above(Collaboration.genre_diversity_score)),
            func.sum(_above(Collaboration.role_diversity_score)),
        )
        total, avg_genre, avg_role, high_genre, high_role = self.session.exec(stmt).one()
        return DiversityStats(
            total=total or 0,
            avg_genre_diversity=float(avg_genre) if avg_genre is not None else None,
            avg_role_diversity=float(avg_role) if avg_role is not None else None,
            high_genre_diversity=int(high_genre or 0),
            high_role_diversity=int(high_role or 0),
        )


def peak_year(years) -> Optional[int]:
    """Year with the most films; the latest year wins ties."""
    counts = Counter(years)
    if not counts:
        return None
    return max(counts, key=lambda year: (counts[year], year))


def _above(column):
    return case((column > HIGH_DIVERSITY_THRESHOLD, 1), else_=0)
