"""
Database session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from voltdine.core.config import settings
from voltdine.db.base import Base


def _connect_args(url: str) -> dict:
    """Driver-level timeouts so no aggregation query hangs indefinitely."""
    if url.startswith("mysql+pymysql"):
        return {
            "connect_timeout": settings.DB_QUERY_TIMEOUT,
            "read_timeout": settings.DB_QUERY_TIMEOUT,
            "write_timeout": settings.DB_QUERY_TIMEOUT,
        }
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.DB_QUERY_TIMEOUT}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=3600,
    connect_args=_connect_args(settings.DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
