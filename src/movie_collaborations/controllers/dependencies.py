import threading
from typing import Dict
from fastapi import Depends
from sqlalchemy.engine import Engine

from movie_collaborations.config import CollaborationSettings
from movie_collaborations.data_access.database import get_db_engine
from movie_collaborations.services.collaboration_service import CollaborationService

# One service per engine, so an in-memory path cache lives as long as the app
_services: Dict[int, CollaborationService] = {}
_services_lock = threading.Lock()


def get_collaboration_service(db_engine: Engine = Depends(get_db_engine)) -> CollaborationService:
    with _services_lock:
        service = _services.get(id(db_engine))
        if service is None or service.engine is not db_engine:
            service = CollaborationService(db_engine, settings=CollaborationSettings.from_env())
            _services[id(db_engine)] = service
        return service
