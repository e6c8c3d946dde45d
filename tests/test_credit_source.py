"""Tests for CreditSource reads over the raw credit tables."""

from datetime import date

import pytest

from movie_collaborations.data_access.credit_source import CREDIT_COLUMNS, FACT_COLUMNS, CreditSource


@pytest.fixture
def films(make_movie):
    make_movie(10, cast=[1, 2], directors=[3], release_date=date(2005, 3, 1), rating=6.5, revenue=500, title="Later")
    make_movie(20, cast=[2, 1], crew={"Editor": [4]}, release_date=date(1998, 7, 1), rating=None, revenue=None,
               title="Earlier")
    make_movie(30, cast=[8, 9], release_date=None)


@pytest.fixture
def source(session, films):
    return CreditSource(session)


class TestCreditRows:
    """Tests for get_all_movie_ids() and get_credits()."""

    def test_all_movie_ids(self, source):
        assert source.get_all_movie_ids() == [10, 20, 30]

    def test_credits_for_one_movie(self, source):
        """Cast and crew rows come back in insertion order."""
        rows = source.get_credits(10)

        assert [(r.person_id, r.role_kind, r.billing_order, r.job) for r in rows] == [
            (1, "cast", 0, None),
            (2, "cast", 1, None),
            (3, "crew", None, "Director"),
        ]
        assert rows[0].character == "Role 0"

    def test_unknown_movie_has_no_credits(self, source):
        assert source.get_credits(999) == []


class TestMovieFacts:
    """Tests for get_movie_fact()."""

    def test_fact(self, source):
        fact = source.get_movie_fact(10)

        assert fact.title == "Later"
        assert fact.release_date == date(2005, 3, 1)
        assert fact.audience_rating == 6.5
        assert fact.revenue == 500

    def test_missing_values_are_none(self, source):
        fact = source.get_movie_fact(20)
        assert fact.audience_rating is None
        assert fact.revenue is None

    def test_unknown_movie(self, source):
        assert source.get_movie_fact(999) is None


class TestFrames:
    """Tests for the batch DataFrame reads."""

    def test_credits_frame(self, source):
        df = source.get_credits_frame([20, 30])

        assert list(df.columns) == CREDIT_COLUMNS
        assert len(df) == 5
        assert set(df["movie_id"]) == {20, 30}

    def test_facts_frame(self, source):
        df = source.get_movie_facts_frame([10, 30])

        assert list(df.columns) == FACT_COLUMNS
        assert list(df["movie_id"]) == [10, 30]

    def test_empty_batches(self, source):
        assert source.get_credits_frame([]).empty
        assert list(source.get_movie_facts_frame([]).columns) == FACT_COLUMNS


class TestAdjacency:
    """Tests for get_connected_people() and find_connecting_movie()."""

    def test_connected_people(self, source):
        """Everyone sharing a credited film, without duplicates or the person themselves."""
        assert source.get_connected_people(2) == [1, 3, 4]
        assert source.get_connected_people(4) == [1, 2]

    def test_isolated_person(self, source):
        assert source.get_connected_people(999) == []

    def test_connecting_movie_is_earliest(self, source):
        movie = source.find_connecting_movie(1, 2)

        assert (movie.id, movie.title, movie.year) == (20, "Earlier", 1998)

    def test_no_connecting_movie(self, source):
        assert source.find_connecting_movie(1, 9) is None
