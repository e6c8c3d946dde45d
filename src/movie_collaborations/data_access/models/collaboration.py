from sqlmodel import SQLModel, Field, UniqueConstraint
from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Index, JSON
from typing import List, Optional
from datetime import date, datetime, timezone

# Edges are stored once per unordered pair with person_a_id < person_b_id; the check
# constraint and the unique index on the pair are what concurrent writers race against.


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Collaboration(SQLModel, table=True):
    __tablename__ = "collaborations"
    __table_args__ = (
        UniqueConstraint("person_a_id", "person_b_id", name="uq_collaborations_pair"),
        CheckConstraint("person_a_id < person_b_id", name="ordered_persons"),
        Index("ix_collaborations_person_b_a", "person_b_id", "person_a_id"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    person_a_id: int = Field(foreign_key="people.id")
    person_b_id: int = Field(foreign_key="people.id")
    collaboration_count: int = Field(default=0, ge=0, index=True)
    first_collaboration_date: Optional[date] = None
    latest_collaboration_date: Optional[date] = None
    avg_movie_rating: Optional[float] = None
    rated_count: int = 0
    # Box-office sums pass 2^31
    total_revenue: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    years_active: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    peak_year: Optional[int] = None
    genre_diversity_score: Optional[float] = None
    role_diversity_score: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))


class CollaborationDetail(SQLModel, table=True):
    __tablename__ = "collaboration_details"
    __table_args__ = (UniqueConstraint("collaboration_id", "movie_id", name="uq_collaboration_details"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    collaboration_id: int = Field(foreign_key="collaborations.id", index=True)
    movie_id: int = Field(foreign_key="movies.id", index=True)
    collaboration_type: str = Field(index=True)
    year: int = Field(index=True)
    movie_rating: Optional[float] = None
    movie_revenue: Optional[int] = Field(default=None, sa_column=Column(BigInteger))


class PersonRelationship(SQLModel, table=True):
    __tablename__ = "person_relationships"
    __table_args__ = (UniqueConstraint("from_person_id", "to_person_id", name="uq_person_relationships"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    from_person_id: int = Field(foreign_key="people.id")
    to_person_id: int = Field(foreign_key="people.id")
    degree: int
    shortest_path: List[int] = Field(sa_column=Column(JSON, nullable=False))
    calculated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
