# app/db/session.py
from datetime import date

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings
from app.services.data_access import SqlAlchemyStore

settings = get_settings()

# For SQLite, `check_same_thread=False` is needed for FastAPI dev usage
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> SqlAlchemyStore:
    """FastAPI dependency wrapping the request session in the data-access interface."""
    return SqlAlchemyStore(db)


def get_today() -> date:
    # Overridden in tests to pin "today" for utilization reports
    return date.today()
