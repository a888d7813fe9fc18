from contextlib import contextmanager
from typing import Iterator
from sqlmodel import SQLModel, create_engine, Session
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# check_same_thread is needed for SQLite, remove for PostgreSQL
connect_args = {"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

def get_session():
    with Session(engine) as session:
        yield session

def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Run a write and everything derived from it as one transaction.

    Commits when the block exits cleanly; any exception rolls back every
    statement issued inside the block and is re-raised.
    """
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("transaction_rolled_back")
        session.rollback()
        raise
