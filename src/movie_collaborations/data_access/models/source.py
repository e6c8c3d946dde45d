# Tables owned by the import side (TMDb/OMDb importers). This package only reads them.
from sqlmodel import SQLModel, Field, UniqueConstraint
from sqlalchemy import BigInteger, Column
from typing import Optional
from datetime import date


class Person(SQLModel, table=True):
    __tablename__ = "people"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str


class Movie(SQLModel, table=True):
    __tablename__ = "movies"
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    release_date: Optional[date] = None
    vote_average: Optional[float] = None
    revenue: Optional[int] = Field(default=None, sa_column=Column(BigInteger))


class MovieCredit(SQLModel, table=True):
    __tablename__ = "movie_credits"
    id: Optional[int] = Field(default=None, primary_key=True)
    movie_id: int = Field(foreign_key="movies.id", index=True)
    person_id: int = Field(foreign_key="people.id", index=True)
    credit_type: str  # "cast" or "crew"
    cast_order: Optional[int] = None
    department: Optional[str] = None
    job: Optional[str] = None
    character: Optional[str] = None


class MovieGenre(SQLModel, table=True):
    __tablename__ = "movie_genres"
    __table_args__ = (UniqueConstraint("movie_id", "genre_id", name="uq_movie_genres"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    movie_id: int = Field(foreign_key="movies.id", index=True)
    genre_id: int
