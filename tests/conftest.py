"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy.orm import sessionmaker

from panelmcp.database.sqlite_client import get_engine
from panelmcp.resources.registry import ResourceRegistry
from panelmcp.workbench.models import Comment, Post, Tag, User


@pytest.fixture
def engine():
    """In-memory SQLite engine with foreign keys enforced and tables created."""
    engine = get_engine("sqlite:///:memory:")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """Create a temporary in-memory database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def registry():
    registry = ResourceRegistry()
    registry.register("users", User)
    registry.register("posts", Post)
    registry.register("comments", Comment)
    registry.register("tags", Tag)
    return registry


@pytest.fixture
def make_user(session):
    """Insert a user directly, bypassing validation."""
    counter = {"n": 0}

    def _make(name=None, email=None, status="active", **extra):
        counter["n"] += 1
        user = User(
            name=name or f"User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            status=status,
            **extra,
        )
        session.add(user)
        session.commit()
        return user

    return _make


@pytest.fixture
def make_post(session):
    def _make(user, title="Hello", published=False, body=None):
        post = Post(user_id=user.id, title=title, published=published, body=body)
        session.add(post)
        session.commit()
        return post

    return _make
