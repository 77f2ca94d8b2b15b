"""
SQLAlchemy engine and session utilities for the video store.

Tables are created with ``create_all`` on first use; sqlite is the default
backend, any SQLAlchemy URL works.
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from feed_aggregator.storage.orm import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    In-memory sqlite shares one connection across threads so every session
    sees the same database; file-backed sqlite gets its parent directory
    created.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        database = url.database or ""
        if database in ("", ":memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        directory = os.path.dirname(database)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(database_url: str) -> sessionmaker:
    """
    Initialize the database and return a session factory.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Session factory bound to a fresh engine with all tables created
    """
    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)

    logger.info("Testing database connection...")
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    logger.info(f"Database ready at {make_url(database_url).render_as_string(hide_password=True)}")

    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back on error, and always closes the session.

    Yields:
        SQLAlchemy session
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
