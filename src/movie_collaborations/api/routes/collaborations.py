from fastapi import APIRouter
from movie_collaborations.controllers.collaboration_controller import CollaborationController

router = APIRouter(prefix="/collaborations", tags=["collaborations"])
collaboration_controller = CollaborationController()
router.include_router(collaboration_controller.router)
