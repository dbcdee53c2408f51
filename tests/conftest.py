"""
Pytest fixtures for Tollgate tests.

Provides an in-memory database with a few host application models, and
Tollgate instances over it. The ``tollgate`` fixture is parametrized so
resolution tests run against both the cached and the uncached clipboard.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any, Optional

import pytest
from sqlalchemy import Engine, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column
from sqlalchemy.pool import StaticPool

from tollgate import ArrayStore, SQLPermissionStore, Tollgate
from tollgate.entities import EntityResolver


# ============================================================================
# Host Application Models
# ============================================================================


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __morph_type__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50))
    team_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    age: Mapped[int] = mapped_column(default=30)


class Account(Base):
    __tablename__ = "accounts"
    __morph_type__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50))
    actor_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    actor_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    team_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    active: Mapped[bool] = mapped_column(default=True)


class Team(Base):
    __tablename__ = "teams"
    __morph_type__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50))


def persist(engine: Engine, *entities: Any) -> None:
    """Save entities and keep them usable after the session closes."""
    with Session(engine, expire_on_commit=False) as session:
        session.add_all(entities)
        session.commit()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine holding the host application tables."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine: Engine) -> SQLPermissionStore:
    """A bare permission store with its tables created."""
    store = SQLPermissionStore(engine, resolver=EntityResolver(user_model=User))
    store.create_tables()
    return store


# ============================================================================
# Tollgate Fixtures
# ============================================================================


@pytest.fixture(params=["cached", "uncached"])
def tollgate(request: pytest.FixtureRequest, engine: Engine) -> Tollgate:
    """Tollgate over the test database, once per clipboard kind."""
    cache = ArrayStore() if request.param == "cached" else None
    return Tollgate.create(engine, cache=cache, user_model=User)


@pytest.fixture
def cached_tollgate(engine: Engine) -> Tollgate:
    """Tollgate using the default in-memory cache."""
    return Tollgate.create(engine, user_model=User)


# ============================================================================
# Entity Factories
# ============================================================================


@pytest.fixture
def make_user(engine: Engine) -> Callable[..., User]:
    """Create and persist a user."""
    def factory(name: str = "user", team_id: int | None = None, age: int = 30) -> User:
        user = User(name=name, team_id=team_id, age=age)
        persist(engine, user)
        return user
    return factory


@pytest.fixture
def make_account(engine: Engine) -> Callable[..., Account]:
    """Create and persist an account, optionally owned by a user."""
    def factory(
        name: str = "account",
        owner: User | None = None,
        user_id: int | None = None,
        team_id: int | None = None,
        active: bool = True,
    ) -> Account:
        account = Account(
            name=name,
            actor_id=owner.id if owner else None,
            actor_type="users" if owner else None,
            user_id=user_id,
            team_id=team_id,
            active=active,
        )
        persist(engine, account)
        return account
    return factory


@pytest.fixture
def make_team(engine: Engine) -> Callable[..., Team]:
    """Create and persist a team."""
    def factory(name: str = "team") -> Team:
        team = Team(name=name)
        persist(engine, team)
        return team
    return factory


@pytest.fixture
def user(make_user: Callable[..., User]) -> User:
    return make_user("alice")


@pytest.fixture
def other_user(make_user: Callable[..., User]) -> User:
    return make_user("bob")
