"""Database setup for the store's users, roles and devices."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .config import settings
from .errors import StorageError

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    # SQLite connections are shared with FastAPI's worker threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url, connect_args=_connect_args(settings.database_url), future=True
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit the work done inside the block, or roll all of it back.

    SQLAlchemy failures are logged and re-raised as :class:`StorageError`;
    any other exception is re-raised untouched after the rollback.
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("database error, transaction rolled back")
        raise StorageError(str(getattr(exc, "orig", None) or exc)) from exc
    except Exception:
        session.rollback()
        raise


def seed_roles(session: Session) -> int:
    """Create the configured default roles that do not exist yet."""
    from .models.user import Role

    created = 0
    with transaction(session):
        for name, permission in settings.default_roles:
            if session.query(Role).filter(Role.name == name).first() is None:
                session.add(Role(name=name, permission=permission))
                created += 1
    if created:
        logger.info("seeded %s default roles", created)
    return created


def init_db(bind=None) -> None:
    """Create database tables if they do not exist and seed default roles."""
    from .models import device, user  # noqa: F401  register tables

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    session = Session(bind=bind, autoflush=False, future=True)
    try:
        seed_roles(session)
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """Provide a session scoped to a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
