"""Tests for the table definitions of the collaboration store."""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable
from sqlmodel import Session

from movie_collaborations.data_access.collaboration_store import CollaborationStore
from movie_collaborations.data_access.models.collaboration import (
    Collaboration, CollaborationDetail, PersonRelationship,
)
from movie_collaborations.data_access.models.source import Movie

AVATAR_REVENUE = 2_923_706_026


def column_ddl(table, name):
    ddl = str(CreateTable(table.__table__).compile(dialect=postgresql.dialect()))
    return next(line.strip() for line in ddl.splitlines() if line.strip().startswith(f"{name} "))


class TestColumnTypes:
    """PostgreSQL DDL of the revenue and timestamp columns."""

    @pytest.mark.parametrize("table, name", [
        (Collaboration, "total_revenue"),
        (CollaborationDetail, "movie_revenue"),
        (Movie, "revenue"),
    ])
    def test_revenue_is_bigint(self, table, name):
        assert "BIGINT" in column_ddl(table, name)

    @pytest.mark.parametrize("table, name", [
        (Collaboration, "created_at"),
        (Collaboration, "updated_at"),
        (PersonRelationship, "calculated_at"),
        (PersonRelationship, "expires_at"),
    ])
    def test_timestamps_carry_time_zone(self, table, name):
        assert "TIMESTAMP WITH TIME ZONE" in column_ddl(table, name)


class TestStoredValues:
    """Values written by a rebuild."""

    def test_billion_dollar_revenue_is_aggregated(self, service, engine, make_movie):
        """Revenue past 2^31 is summed, not skipped."""
        make_movie(1, cast=[1, 2], release_date=date(2009, 12, 18), revenue=AVATAR_REVENUE)
        make_movie(2, cast=[1, 2], release_date=date(2022, 12, 16), revenue=AVATAR_REVENUE)

        assert service.rebuild_all() == 1

        edge = service.get_edge(1, 2)
        assert edge.total_revenue == 2 * AVATAR_REVENUE
        with Session(engine) as session:
            details = CollaborationStore(session).get_details(edge.id)
            assert [d.movie_revenue for d in details] == [AVATAR_REVENUE, AVATAR_REVENUE]

    def test_edges_are_stamped_in_utc(self, service, make_movie):
        make_movie(1, cast=[1, 2])
        service.rebuild_all()

        created_at = service.get_edge(1, 2).created_at
        if created_at.tzinfo is None:
            # SQLite keeps the UTC wall time only
            created_at = created_at.replace(tzinfo=timezone.utc)
        assert datetime.now(timezone.utc) - created_at < timedelta(minutes=5)
