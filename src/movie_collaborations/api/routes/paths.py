from fastapi import APIRouter
from movie_collaborations.controllers.path_controller import PathController

router = APIRouter(prefix="/paths", tags=["paths"])
path_controller = PathController()
router.include_router(path_controller.router)
