import os
import logging
from typing import Optional
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel

# Imported for their side effect of registering tables on SQLModel.metadata
from movie_collaborations.data_access.models import source, collaboration  # noqa: F401

# Configure logging
logger = logging.getLogger(__name__)
logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

_engine: Optional[Engine] = None


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    PostgreSQL gets the pooled configuration; SQLite (used for local runs and
    tests) gets a single shared connection and working SAVEPOINT support.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=5,
        max_overflow=10
    )


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT; take over transaction control
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_db_engine() -> Engine:
    """Provide the database engine for dependency injection."""
    global _engine
    if _engine is None:
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL environment variable not set")
        _engine = create_db_engine(database_url)
    return _engine


def init_db(engine: Optional[Engine] = None):
    """Initialize the database by creating source and collaboration tables."""
    engine = engine or get_db_engine()
    try:
        logger.info("Initializing database tables")
        SQLModel.metadata.create_all(engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

