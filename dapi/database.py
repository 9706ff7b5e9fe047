"""
Database engine and session management for dapi's own tables
(users, roles, model permissions, audit logs).

The data database that the API reads from is reached through a dialect
driver (see ``dapi.dialects``), not through these sessions.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator, Optional
import os

from dapi.config import settings

Base = declarative_base()


def create_store_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the internal store.

    SQLite files get their parent directory created; in-memory SQLite
    shares one connection across threads so the audit worker and request
    threads see the same tables.
    """
    url = url or settings.AUDIT_DATABASE_URL

    if url.startswith("sqlite"):
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            return create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        path = url.split("///", 1)[-1]
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_store(engine: Engine) -> None:
    """Create dapi's internal tables if they do not exist."""
    # Import models so they are registered on Base.metadata
    import dapi.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for a session that commits on success."""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
