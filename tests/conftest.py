# Test Configuration
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from dapi.database import create_session_factory, create_store_engine, init_store
from dapi.dialects import SQLiteDialect
from dapi.models import ModelPermission, Role, User
from dapi.registry import SchemaRegistry
from dapi.trail import Trail
from tests.library import Author, Book, CollectingLogger, LibraryBase, Tag, allow, seed_library


@pytest.fixture
def data_engine():
    """In-memory SQLite holding the library tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    LibraryBase.metadata.create_all(engine)
    with Session(engine) as session:
        seed_library(session)
    yield engine
    engine.dispose()


@pytest.fixture
def trail_logger():
    return CollectingLogger()


@pytest.fixture
def trail(trail_logger):
    return Trail(logger=trail_logger)


@pytest.fixture
def dialect(data_engine, trail):
    return SQLiteDialect("sqlite://", engine=data_engine, trail=trail)


@pytest.fixture
def registry():
    """Library models, all publicly readable."""
    registry = SchemaRegistry()
    registry.register(Author, public_read=allow)
    registry.register(Book, public_read=allow)
    registry.register(Tag, public_read=allow)
    return registry


@pytest.fixture
def store_engine():
    engine = create_store_engine("sqlite://")
    init_store(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store_session_factory(store_engine):
    return create_session_factory(store_engine)


@pytest.fixture
def admin_user():
    return User(username="admin", is_active=True, is_admin=True)


@pytest.fixture
def book_reader():
    """Non-admin user whose role may read books."""
    role = Role(name="readers")
    role.permissions = [ModelPermission(model_name="Book", can_read=True)]
    return User(username="reader", is_active=True, is_admin=False, roles=[role])


@pytest.fixture
def nobody():
    """Active user without any permissions."""
    return User(username="nobody", is_active=True, is_admin=False)
