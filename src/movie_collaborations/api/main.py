from fastapi import FastAPI
from movie_collaborations.api.routes import collaborations, paths
from movie_collaborations.data_access.database import init_db
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)
# Suppress overly verbose SQLAlchemy logs if not needed
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

app = FastAPI(title="Movie Collaborations")


app.include_router(collaborations.router, prefix="", tags=["collaborations"])
app.include_router(paths.router, prefix="", tags=["paths"])

@app.on_event("startup")
async def startup_event():
    """Create collaboration and path cache tables on startup."""
    logger.info("Starting application initialization")
    init_db()
    logger.info("Application initialized successfully")
