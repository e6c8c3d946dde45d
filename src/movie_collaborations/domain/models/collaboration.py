from enum import Enum
from typing import List, Optional
from datetime import date
from pydantic import BaseModel


class CollaborationType(str, Enum):
    # Declaration order is classification precedence
    ACTOR_ACTOR = "actor-actor"
    ACTOR_DIRECTOR = "actor-director"
    DIRECTOR_DIRECTOR = "director-director"
    DIRECTOR_CREW = "director-crew"
    CREW_CREW = "crew-crew"
    OTHER = "other"

    @property
    def precedence(self) -> int:
        return list(CollaborationType).index(self)


class CreditRow(BaseModel):
    movie_id: int
    person_id: int
    role_kind: str
    billing_order: Optional[int] = None
    department: Optional[str] = None
    job: Optional[str] = None
    character: Optional[str] = None


class MovieFact(BaseModel):
    movie_id: int
    title: Optional[str] = None
    release_date: Optional[date] = None
    audience_rating: Optional[float] = None
    revenue: Optional[int] = None


class PathResult(BaseModel):
    from_person_id: int
    to_person_id: int
    degree: int
    path: List[int]
    cached: bool = False


class ConnectingMovie(BaseModel):
    id: int
    title: str
    year: Optional[int] = None


class PathConnection(BaseModel):
    person_a_id: int
    movie: Optional[ConnectingMovie] = None
    person_b_id: int


class PathWithMovies(BaseModel):
    degree: int
    path: List[int]
    connections: List[PathConnection] = []


class KeyCollaboration(BaseModel):
    type: str
    person_a_id: int
    person_b_id: int
    collaboration_count: int
    is_reunion: bool = True


class KeyCollaborations(BaseModel):
    director_actor_reunions: List[KeyCollaboration] = []
    actor_partnerships: List[KeyCollaboration] = []
    total_reunions: int = 0


class DiversityStats(BaseModel):
    total: int = 0
    avg_genre_diversity: Optional[float] = None
    avg_role_diversity: Optional[float] = None
    high_genre_diversity: int = 0
    high_role_diversity: int = 0


class YearlyCollaborationTrend(BaseModel):
    year: int
    unique_collaborators: int
    new_collaborators: int
    total_collaborations: int
    avg_rating: Optional[float] = None
    total_revenue: int = 0
    genre_ids: List[int] = []


class RelatedMovie(BaseModel):
    id: int
    title: str
    release_date: Optional[date] = None
    shared_count: int
    shared_names: List[str] = []
    connection_reason: str
