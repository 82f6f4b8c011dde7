# folio/database.py
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .models import Base
from . import config

engine = None
SessionLocal = None


def init_db(database_path: Optional[Union[str, Path]] = None, force_recreate: bool = False):
    """
    Connects to the tree store and creates its tables if they are missing.

    database_path defaults to the one in folio.toml. A second call is a no-op
    unless force_recreate is set, in which case the previous connection is
    closed and the tree store at database_path is opened in its place.
    """
    global engine, SessionLocal
    if engine is not None and not force_recreate:
        return

    close_db()
    if database_path is None:
        database_path = config.load_config().database_path

    engine = create_engine(f"sqlite:///{database_path}")
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)


def close_db():
    """Closes every pooled connection to the tree store."""
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None


@contextmanager
def get_session():
    """Provide a transactional scope around a series of operations."""
    if not SessionLocal:
        init_db()
    db_session = SessionLocal() # type: ignore
    try:
        yield db_session
    finally:
        db_session.close()
