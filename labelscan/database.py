"""SQLAlchemy engine and session factory for the remote scan store."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from labelscan.config import settings

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
