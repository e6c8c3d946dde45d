from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from typing import Any, Dict, List, Optional
from movie_collaborations.services.collaboration_service import CollaborationService
from movie_collaborations.domain.errors import CollaborationError, StoreUnavailable
from movie_collaborations.domain.models.collaboration import (
    DiversityStats, KeyCollaborations, RelatedMovie, YearlyCollaborationTrend,
)
from .dependencies import get_collaboration_service
import logging

logger = logging.getLogger(__name__)


class CollaborationController:
    def __init__(self):
        """Initialize the CollaborationController with a router."""
        self.router = APIRouter()
        self._register_routes()

    def _register_routes(self):
        """Register collaboration routes; fixed paths go before /{a}/{b}."""

        @self.router.get("/trending", response_model=List[Dict[str, Any]])
        def get_trending(
            start_year: int = Query(..., ge=1870, description="Earliest year of the first collaboration"),
            limit: int = Query(20, ge=1, le=100),
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Collaborations that started on/after start_year, by average revenue."""
            try:
                return [edge.model_dump() for edge in service.find_trending_collaborations(start_year, limit=limit)]
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.get("/diversity", response_model=DiversityStats)
        def get_diversity_stats(service: CollaborationService = Depends(get_collaboration_service)):
            """Totals, averages and high-diversity counts over all collaborations."""
            try:
                return service.diversity_stats()
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.post("/diversity", response_model=Dict[str, int])
        def update_diversity_scores(service: CollaborationService = Depends(get_collaboration_service)):
            """Recompute role/genre diversity and peak year for every collaboration."""
            try:
                return {"updated": service.update_all_diversity_scores()}
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.post("/rebuild", response_model=Dict[str, str])
        def rebuild_collaborations(
            background_tasks: BackgroundTasks,
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Start a full rebuild of the collaboration graph in the background."""
            background_tasks.add_task(_rebuild_in_background, service)
            return {"message": "Collaboration rebuild started"}

        @self.router.post("/movies/{movie_id}", response_model=Dict[str, int])
        def aggregate_movie(movie_id: int, service: CollaborationService = Depends(get_collaboration_service)):
            """Fold one movie's credits into the graph after it has been imported."""
            try:
                created = service.rebuild_for_movie(movie_id)
                return {"movie_id": movie_id, "collaborations_created": created}
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))
            except Exception as e:
                logger.error(f"Failed to aggregate movie {movie_id}: {str(e)}")
                raise HTTPException(status_code=500, detail=str(e))

        @self.router.get("/movies/{movie_id}/key", response_model=KeyCollaborations)
        def get_key_collaborations(movie_id: int, service: CollaborationService = Depends(get_collaboration_service)):
            """Director/actor reunions and actor partnerships for a movie."""
            try:
                return service.get_key_collaborations(movie_id)
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.get("/movies/{movie_id}/related", response_model=List[RelatedMovie])
        def get_related_movies(movie_id: int, service: CollaborationService = Depends(get_collaboration_service)):
            """Movies sharing at least two of this movie's leading people."""
            try:
                return service.get_related_movies_by_collaboration(movie_id)
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.get("/people/{person_id}/trends", response_model=List[YearlyCollaborationTrend])
        def get_collaboration_trends(person_id: int, service: CollaborationService = Depends(get_collaboration_service)):
            """Collaborators, films, rating and revenue per year, newest first."""
            try:
                return service.get_person_collaboration_trends(person_id)
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.get("/people/{person_id}/partners", response_model=List[Dict[str, Any]])
        def get_frequent_partners(
            person_id: int,
            min_count: int = Query(2, ge=1),
            limit: int = Query(20, ge=1, le=100),
            collaboration_type: Optional[str] = Query(None, description="e.g. actor-director"),
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """People who most often worked with person_id."""
            try:
                partners = service.find_frequent_partners(
                    person_id, min_count=min_count, limit=limit, collaboration_type=collaboration_type
                )
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))
            return [
                {"partner": person.model_dump(), "collaboration": edge.model_dump()}
                for person, edge in partners
            ]

        @self.router.get("/{person_a_id}/{person_b_id}", response_model=Dict[str, Any])
        def get_collaboration(
            person_a_id: int,
            person_b_id: int,
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Aggregated collaboration between two people, in either order."""
            try:
                edge = service.get_edge(person_a_id, person_b_id)
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))
            if edge is None:
                raise HTTPException(status_code=404, detail=f"No collaboration between {person_a_id} and {person_b_id}")
            return edge.model_dump()

        @self.router.get("/{person_a_id}/{person_b_id}/similar", response_model=List[Dict[str, Any]])
        def get_similar(
            person_a_id: int,
            person_b_id: int,
            limit: int = Query(10, ge=1, le=100),
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Actor-director collaborations with the closest average rating."""
            try:
                return [edge.model_dump() for edge in service.find_similar(person_a_id, person_b_id, limit=limit)]
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))

        @self.router.get("/{person_a_id}/{person_b_id}/movies", response_model=List[Dict[str, Any]])
        def get_pair_movies(
            person_a_id: int,
            person_b_id: int,
            service: CollaborationService = Depends(get_collaboration_service)
        ):
            """Movies the two people made together, newest first."""
            try:
                return [movie.model_dump() for movie in service.find_movies_for_pair(person_a_id, person_b_id)]
            except StoreUnavailable as e:
                raise HTTPException(status_code=503, detail=str(e))


def _rebuild_in_background(service: CollaborationService) -> None:
    try:
        service.rebuild_all()
    except CollaborationError as e:
        # Nobody is waiting on a background task; the failure is already rolled back
        logger.error(f"Background collaboration rebuild failed: {str(e)}")
