from typing import AbstractSet, Optional

from movie_collaborations.config import DIRECTOR_JOB, KEY_CREW_JOBS
from movie_collaborations.domain.models.collaboration import CollaborationType

CAST = "cast"
CREW = "crew"


def classify(role_a: Optional[str], job_a: Optional[str], role_b: Optional[str], job_b: Optional[str],
             key_crew_jobs: AbstractSet[str] = KEY_CREW_JOBS) -> CollaborationType:
    """Label the collaboration between two credits of the same film.

    Rules are checked in precedence order:
      1. cast + cast                -> actor-actor
      2. cast + Director            -> actor-director
      3. Director + Director        -> director-director
      4. Director + key crew        -> director-crew
      5. key crew + key crew        -> crew-crew
      6. anything else              -> other
    """
    a_cast = role_a == CAST
    b_cast = role_b == CAST
    a_director = job_a == DIRECTOR_JOB
    b_director = job_b == DIRECTOR_JOB
    a_key = job_a in key_crew_jobs
    b_key = job_b in key_crew_jobs

    if a_cast and b_cast:
        return CollaborationType.ACTOR_ACTOR
    if (a_cast and b_director) or (a_director and b_cast):
        return CollaborationType.ACTOR_DIRECTOR
    if a_director and b_director:
        return CollaborationType.DIRECTOR_DIRECTOR
    if (a_director and b_key) or (a_key and b_director):
        return CollaborationType.DIRECTOR_CREW
    if a_key and b_key:
        return CollaborationType.CREW_CREW
    return CollaborationType.OTHER
