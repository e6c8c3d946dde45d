import logging
from typing import List
from sqlmodel import Session

from movie_collaborations.data_access.collaboration_store import CollaborationStore
from movie_collaborations.data_access.models.collaboration import Collaboration

logger = logging.getLogger(__name__)

DEFAULT_SIMILAR_LIMIT = 10


class SimilarityRanker:
    """Ranks actor-director collaborations by closeness of their average film rating."""

    def __init__(self, session: Session):
        self.store = CollaborationStore(session)

    def find_similar(self, person_a_id: int, person_b_id: int, limit: int = DEFAULT_SIMILAR_LIMIT) -> List[Collaboration]:
        original = self.store.get_edge(person_a_id, person_b_id)
        if original is None:
            logger.info(f"No collaboration between {person_a_id} and {person_b_id}; nothing to compare")
            return []
        similar = self.store.find_similar(original, limit=limit)
        logger.debug(f"Found {len(similar)} collaborations similar to {original.id}")
        return similar
