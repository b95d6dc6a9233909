"""
Database engine, session factory and the declarative base.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger("core.database")


def _build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI serves sync endpoints from a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = _build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_database() -> None:
    """Create tables that do not exist yet (local runs; production uses Alembic)."""
    import app.models  # noqa: F401

    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
