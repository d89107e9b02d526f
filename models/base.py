"""
Database configuration and base model.

Uses SQLAlchemy 2.0 declarative style with SQLite by default. Any other
transactional store SQLAlchemy speaks to works through create_session_factory().
"""

from pathlib import Path
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

import appdirs


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    # Use appdirs for cross-platform data directory
    data_dir = Path(appdirs.user_data_dir("SurvivorPool", "SurvivorPool"))
    return data_dir / "survivor_pool.db"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


DATABASE_URL = f"sqlite:///{get_database_path()}"
engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},  # Allow multi-threaded access
)

# Session factory
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def create_session_factory(url: str, echo: bool = False) -> sessionmaker:
    """
    Build a session factory bound to an arbitrary database URL.

    The schema is created if it does not exist yet.
    """
    kwargs: dict = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection, otherwise each checkout gets an empty database
            kwargs["poolclass"] = StaticPool
    bound_engine: Engine = create_engine(url, echo=echo, **kwargs)
    Base.metadata.create_all(bind=bound_engine)
    return sessionmaker(bind=bound_engine, autocommit=False, autoflush=False)


@contextmanager
def get_session(
    factory: Optional[Callable[[], Session]] = None,
) -> Generator[Session, None, None]:
    """Context manager for database sessions."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Initialize the database, creating all tables."""
    get_database_path().parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
