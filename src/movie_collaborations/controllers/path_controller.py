from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
from movie_collaborations.services.collaboration_service import CollaborationService
from movie_collaborations.domain.errors import PathNotFound, PathSearchTimeout, StoreUnavailable
from movie_collaborations.domain.models.collaboration import PathResult, PathWithMovies
from .dependencies import get_collaboration_service
import logging

logger = logging.getLogger(__name__)


class PathController:
    def __init__(self):
        """Initialize the PathController with a router."""
        self.router = APIRouter()
        self._register_routes()

    def _register_routes(self):
        """Register degrees-of-separation routes."""

        @self.router.get("/{from_person_id}/{to_person_id}", response_model=PathResult)
        def get_shortest_path(
            from_person_id: int,
            to_person_id: int,
            max_depth: Optional[int] = Query(None, ge=1, le=10, description="Maximum degrees of separation"),
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Shortest chain of shared films between two people."""
            try:
                return service.find_shortest_path(from_person_id, to_person_id, max_depth=max_depth)
            except PathNotFound as e:
                raise HTTPException(status_code=404, detail=str(e))
            except PathSearchTimeout as e:
                raise HTTPException(status_code=504, detail=str(e))
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.get("/{from_person_id}/{to_person_id}/movies", response_model=PathWithMovies)
        def get_path_with_movies(
            from_person_id: int,
            to_person_id: int,
            max_depth: Optional[int] = Query(None, ge=1, le=10),
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Shortest path with one connecting movie per hop."""
            try:
                return service.find_path_with_movies(from_person_id, to_person_id, max_depth=max_depth)
            except PathNotFound as e:
                raise HTTPException(status_code=404, detail=str(e))
            except PathSearchTimeout as e:
                raise HTTPException(status_code=504, detail=str(e))
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))
