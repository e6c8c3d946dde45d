"""Tests for the pair accumulator and the running-mean merge."""

from datetime import date

import pytest

from movie_collaborations.domain.models.accumulator import DetailObservation, EdgeTotals, PairAccumulator
from movie_collaborations.domain.models.collaboration import CollaborationType


def observation(movie_id, year=2000, rating=7.0, revenue=100, kind=CollaborationType.ACTOR_ACTOR):
    return DetailObservation(
        movie_id=movie_id,
        collaboration_type=kind,
        year=year,
        release_date=date(year, 6, 1),
        movie_rating=rating,
        movie_revenue=revenue,
    )


class TestPairAccumulator:
    """Tests for PairAccumulator."""

    def test_rejects_non_canonical_pair(self):
        """Should refuse pairs that are not ordered low-high."""
        with pytest.raises(ValueError):
            PairAccumulator(5, 3)
        with pytest.raises(ValueError):
            PairAccumulator(4, 4)

    def test_fold_over_observations(self):
        """Should collect distinct films with their dates, ratings, revenue and years."""
        acc = PairAccumulator.from_observations(1, 2, [
            observation(10, year=1999, rating=6.0, revenue=None),
            observation(11, year=2004, rating=None, revenue=500),
            observation(12, year=2004, rating=8.0, revenue=100),
        ])

        assert acc.movie_ids == {10, 11, 12}
        assert acc.first_date == date(1999, 6, 1)
        assert acc.latest_date == date(2004, 6, 1)
        assert acc.rating_count == 2
        assert acc.avg_rating == pytest.approx(7.0)
        assert acc.revenue_sum == 600
        assert acc.years == {1999, 2004}

    def test_one_detail_per_film_keeps_highest_precedence(self):
        """Two observations of one film keep the higher-precedence type."""
        acc = PairAccumulator(1, 2)
        acc.add(observation(10, kind=CollaborationType.ACTOR_DIRECTOR))
        acc.add(observation(10, kind=CollaborationType.ACTOR_ACTOR))
        acc.add(observation(10, kind=CollaborationType.CREW_CREW))

        assert len(acc.details) == 1
        assert acc.details[10].collaboration_type == CollaborationType.ACTOR_ACTOR

    def test_restricted_to(self):
        """Should keep only the requested films."""
        acc = PairAccumulator.from_observations(1, 2, [observation(10), observation(11), observation(12)])

        assert acc.restricted_to({11, 99}).movie_ids == {11}


class TestEdgeTotalsMerge:
    """Tests for EdgeTotals.merge()."""

    def test_new_edge_totals(self):
        """A fresh edge takes the group's statistics directly."""
        acc = PairAccumulator.from_observations(1, 2, [
            observation(10, year=2001, rating=6.0, revenue=100),
            observation(11, year=2003, rating=None, revenue=None),
        ])
        totals = acc.to_totals()

        assert totals.collaboration_count == 2
        assert totals.first_collaboration_date == date(2001, 6, 1)
        assert totals.latest_collaboration_date == date(2003, 6, 1)
        assert totals.avg_movie_rating == pytest.approx(6.0)
        assert totals.rated_count == 1
        assert totals.total_revenue == 100
        assert totals.years_active == [2001, 2003]

    def test_running_mean_weighted_by_rated_films(self):
        """Should compute (old_avg * old_rated + sum(new)) / (old_rated + new_rated)."""
        existing = EdgeTotals(collaboration_count=3, avg_movie_rating=6.0, rated_count=3,
                              first_collaboration_date=date(1990, 1, 1),
                              latest_collaboration_date=date(1995, 1, 1),
                              total_revenue=1000, years_active=[1990, 1995])
        acc = PairAccumulator.from_observations(1, 2, [observation(20, year=2010, rating=8.0, revenue=50)])

        merged = existing.merge(acc)

        assert merged.collaboration_count == 4
        assert merged.avg_movie_rating == pytest.approx((6.0 * 3 + 8.0) / 4)
        assert merged.rated_count == 4
        assert merged.first_collaboration_date == date(1990, 1, 1)
        assert merged.latest_collaboration_date == date(2010, 6, 1)
        assert merged.total_revenue == 1050
        assert merged.years_active == [1990, 1995, 2010]

    def test_keeps_old_mean_without_new_ratings(self):
        """Unrated new films leave the mean untouched."""
        existing = EdgeTotals(collaboration_count=1, avg_movie_rating=5.5, rated_count=1, years_active=[2000])
        acc = PairAccumulator.from_observations(1, 2, [observation(20, rating=None)])

        merged = existing.merge(acc)

        assert merged.avg_movie_rating == 5.5
        assert merged.rated_count == 1
        assert merged.collaboration_count == 2

    def test_takes_new_mean_when_none_before(self):
        """An edge without ratings adopts the new films' mean."""
        existing = EdgeTotals(collaboration_count=1, years_active=[2000])
        acc = PairAccumulator.from_observations(1, 2, [observation(20, rating=9.0), observation(21, rating=7.0)])

        merged = existing.merge(acc)

        assert merged.avg_movie_rating == pytest.approx(8.0)
        assert merged.rated_count == 2

    def test_merge_order_independent(self):
        """Folding films in either order gives the same totals."""
        first = PairAccumulator.from_observations(1, 2, [observation(10, year=2000, rating=6.0, revenue=10)])
        second = PairAccumulator.from_observations(1, 2, [
            observation(11, year=2005, rating=9.0, revenue=20),
            observation(12, year=2006, rating=None, revenue=None),
        ])

        one_way = first.to_totals().merge(second)
        other_way = second.to_totals().merge(first)

        assert one_way.collaboration_count == other_way.collaboration_count == 3
        assert one_way.avg_movie_rating == pytest.approx(other_way.avg_movie_rating)
        assert one_way.first_collaboration_date == other_way.first_collaboration_date
        assert one_way.latest_collaboration_date == other_way.latest_collaboration_date
        assert one_way.total_revenue == other_way.total_revenue == 30
        assert one_way.years_active == other_way.years_active

    def test_merging_nothing_is_a_no_op(self):
        """An empty accumulator leaves the totals unchanged."""
        existing = EdgeTotals(collaboration_count=2, avg_movie_rating=7.0, rated_count=2, years_active=[2000])
        assert existing.merge(PairAccumulator(1, 2)) == existing
