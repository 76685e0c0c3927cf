from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .schema import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(database_url: str, create_schema: bool = True) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""
    engine = create_engine(database_url, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    if create_schema:
        Base.metadata.create_all(engine)
    return engine


def get_session_factory(database_url: str) -> sessionmaker:
    engine = get_engine(database_url)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_session(database_url: str) -> Session:
    """Get a SQLAlchemy session (caller must close it)."""
    return get_session_factory(database_url)()


@contextmanager
def session_context(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for one request-scoped SQLAlchemy session.

    Rolls back on error and always closes. Commits stay explicit: the entity
    repository commits each write itself.

    Usage:
        with session_context(factory) as session:
            read_resources(session, registry, "users")
    """
    session = factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
