"""Tests for diversity scores and peak year."""

from datetime import date

import pytest
from sqlmodel import Session

from movie_collaborations.services.diversity_service import DiversityCalculator, peak_year

A, B = 1, 2


class TestPeakYear:
    """Tests for peak_year()."""

    def test_most_frequent_year(self):
        assert peak_year([2001, 2003, 2003, 2005]) == 2003

    def test_latest_year_wins_ties(self):
        assert peak_year([2001, 2001, 2009, 2009, 2004]) == 2009

    def test_no_years(self):
        assert peak_year([]) is None


class TestDiversityScores:
    """Tests for update_all_diversity_scores() and diversity_stats()."""

    @pytest.fixture
    def scored(self, service, make_movie):
        # A and B: cast together twice, then A directs B once; six genres overall
        make_movie(1, cast=[A, B], release_date=date(2001, 1, 1), genres=[1, 2, 3])
        make_movie(2, cast=[A, B], release_date=date(2001, 6, 1), genres=[3, 4])
        make_movie(3, cast=[B], directors=[A], release_date=date(2004, 1, 1), genres=[5, 6])
        # A one-film pair with a single genre
        make_movie(4, cast=[7, 8], release_date=date(2010, 1, 1), genres=[1])
        service.rebuild_all()
        return service.update_all_diversity_scores()

    def test_scores_and_peak_year(self, service, scored):
        """Role and genre diversity saturate at 5 types and 10 genres."""
        edge = service.get_edge(A, B)

        assert scored == 2
        assert edge.role_diversity_score == pytest.approx(2 / 5)
        assert edge.genre_diversity_score == pytest.approx(6 / 10)
        assert edge.peak_year == 2001

    def test_stats(self, service, scored):
        """Totals and averages over all edges."""
        stats = service.diversity_stats()

        assert stats.total == 2
        assert stats.avg_role_diversity == pytest.approx((0.4 + 0.2) / 2)
        assert stats.avg_genre_diversity == pytest.approx((0.6 + 0.1) / 2)
        assert stats.high_genre_diversity == 0
        assert stats.high_role_diversity == 0

    def test_scores_are_capped(self, engine, make_movie, service):
        """More than ten genres still scores 1.0."""
        make_movie(1, cast=[A, B], genres=list(range(1, 13)))
        service.rebuild_all()

        with Session(engine) as session:
            calculator = DiversityCalculator(session)
            edge = calculator.store.get_edge(A, B)
            calculator.update_diversity_scores(edge)
            session.commit()

        edge = service.get_edge(A, B)
        assert edge.genre_diversity_score == 1.0
        assert service.diversity_stats().high_genre_diversity == 1
