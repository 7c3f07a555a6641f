# src/careops/utils/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from src.careops.exceptions import StorageError

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy ORM models (for declarative base models)
Base = declarative_base()


def create_local_engine(url: str, echo: bool = False) -> Engine:
    """
    Engine for the embedded local store. sqlite connections are shared across
    threads because location lookups run in worker threads.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    try:
        engine = create_engine(url, echo=echo, future=True, connect_args=connect_args)
        # Import models so their tables are registered on Base.metadata
        from src.careops.models import storage_entry  # noqa: F401

        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        logger.error("Error creating local storage engine: %s", e)
        raise StorageError(f"Local storage unavailable: {e}") from e
    logger.info("Local storage ready: %s", url)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
