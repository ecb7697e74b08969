"""Database connection and session management."""
from functools import lru_cache
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings
from .models import Base


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Create an engine for the configured (or given) database URL."""
    url = database_url or get_settings().database_url

    if url.startswith("sqlite"):
        # SQLite uses its own pool classes; sessions may cross threads in request handlers
        return create_engine(url, connect_args={"check_same_thread": False})

    # Stale connections are checked on checkout and recycled hourly
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=7,
        pool_recycle=3600,
        pool_timeout=30,
    )


@lru_cache
def get_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    """Return a cached session factory bound to the database URL."""
    return sessionmaker(autoflush=False, bind=build_engine(database_url))


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Open a session from the configured taskboard session factory.

    The session is closed when the generator finishes. Store functions such
    as task_store.sync_role_assignments commit or roll back on their own.

    Yields:
        Session: Session bound to the TASKBOARD_DATABASE_URL engine
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
