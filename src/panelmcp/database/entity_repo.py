"""Repository functions for generic entity persistence.

This is the only module that commits, deletes or classifies store errors.
Driver-specific error shapes are reduced here to ConstraintViolation or
StoreFailure so nothing above this layer inspects database error text.
"""

from typing import Any, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ConstraintViolation, StoreFailure
from ..utils.logging import get_logger
from .schema import supports_soft_delete, utc_now_z

logger = get_logger(__name__)

# SQLSTATE for foreign_key_violation (PostgreSQL and other ANSI drivers)
FOREIGN_KEY_SQLSTATE = "23503"
# MySQL/MariaDB: cannot delete or update a parent row / child row
MYSQL_FOREIGN_KEY_ERRNOS = (1451, 1452)


def primary_key_column(entity_type: type):
    """Return the single primary key column of a mapped class."""
    columns = inspect(entity_type).primary_key
    if len(columns) != 1:
        raise StoreFailure(f"{entity_type.__name__} must have exactly one primary key column")
    return columns[0]


def primary_key_value(entity: Any) -> Any:
    identity = inspect(entity).identity
    if identity:
        return identity[0]
    column = primary_key_column(type(entity))
    return getattr(entity, column.key)


def coerce_identifier(entity_type: type, record_id: Any) -> Optional[Any]:
    """
    Convert a caller-supplied identifier to the primary key's Python type.

    Returns None when the identifier cannot be converted, which callers treat
    the same as a missing record.
    """
    column = primary_key_column(entity_type)
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return record_id
    if isinstance(record_id, python_type):
        return record_id
    try:
        return python_type(record_id)
    except (TypeError, ValueError):
        return None


def find_by_id(
    session: Session,
    entity_type: type,
    record_id: Any,
    with_trashed: bool = False,
) -> Optional[Any]:
    """
    Find one entity by primary key.

    Soft-deleted rows are only returned when with_trashed is set.
    """
    key = coerce_identifier(entity_type, record_id)
    if key is None:
        return None
    column = primary_key_column(entity_type)
    query = session.query(entity_type).filter(column == key)
    if supports_soft_delete(entity_type) and not with_trashed:
        query = query.filter(entity_type.deleted_at.is_(None))
    return query.first()


def is_foreign_key_violation(error: BaseException) -> bool:
    """
    Decide whether a store error is a referential integrity failure.

    Checks the DBAPI error carried by SQLAlchemy for the SQLSTATE, the MySQL
    errno or the SQLite extended error name, with the SQLite message as a
    last resort for interpreters that do not expose error names.
    """
    if not isinstance(error, IntegrityError):
        return False
    orig = getattr(error, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == FOREIGN_KEY_SQLSTATE:
        return True

    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in MYSQL_FOREIGN_KEY_ERRNOS:
        return True

    if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_FOREIGNKEY":
        return True

    return "FOREIGN KEY constraint failed" in str(orig)


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if is_foreign_key_violation(e):
            logger.warning(f"Foreign key violation during {action}: {e.orig}")
            raise ConstraintViolation(str(e.orig)) from e
        raise StoreFailure(str(e.orig)) from e
    except SQLAlchemyError as e:
        session.rollback()
        raise StoreFailure(str(e)) from e


def save_entity(session: Session, entity: Any) -> Any:
    """Persist a new or modified entity and reload it from the store."""
    session.add(entity)
    _commit(session, "save")
    session.refresh(entity)
    logger.debug(f"Saved {type(entity).__name__} {primary_key_value(entity)}")
    return entity


def soft_delete_entity(session: Session, entity: Any) -> str:
    """Archive an entity; returns the deleted_at timestamp."""
    deleted_at = utc_now_z()
    entity.deleted_at = deleted_at
    _commit(session, "soft delete")
    logger.debug(f"Soft deleted {type(entity).__name__} {primary_key_value(entity)}")
    return deleted_at


def delete_entity(session: Session, entity: Any) -> None:
    """Irreversibly remove an entity."""
    entity_name = type(entity).__name__
    key = primary_key_value(entity)
    session.delete(entity)
    _commit(session, "delete")
    logger.debug(f"Deleted {entity_name} {key}")
