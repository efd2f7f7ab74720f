"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh in-memory SQLite database (aiosqlite) with the full
schema, including the partial unique index on live booking slots. Redis is
disabled so the cache helpers fail open.

Fixture rows are committed and then detached from the session, so tests can
read their ids even after an engine rollback expires everything the session
holds.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import timedelta
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.security import create_access_token
from app.core.time_window import today
from app.models import Booking, Sport, User, Venue

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


async def _persist(session: AsyncSession, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    session.expunge(obj)
    return obj


def auth_headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def days_from_today(days: int):
    return today() + timedelta(days=days)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then dispose of the database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession) -> Callable:
    counter = {"n": 0}

    async def factory(role: str = "player", is_active: bool = True) -> User:
        counter["n"] += 1
        n = counter["n"]
        return await _persist(
            db_session,
            User(email=f"{role}{n}@example.com", name=f"{role.title()} {n}", role=role, is_active=is_active),
        )

    return factory


@pytest_asyncio.fixture
async def player(make_user) -> User:
    return await make_user("player")


@pytest_asyncio.fixture
async def other_player(make_user) -> User:
    return await make_user("player")


@pytest_asyncio.fixture
async def owner(make_user) -> User:
    return await make_user("owner")


@pytest_asyncio.fixture
async def other_owner(make_user) -> User:
    return await make_user("owner")


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin")


@pytest_asyncio.fixture
async def player_headers(player: User) -> dict:
    return auth_headers_for(player)


@pytest_asyncio.fixture
async def other_player_headers(other_player: User) -> dict:
    return auth_headers_for(other_player)


@pytest_asyncio.fixture
async def owner_headers(owner: User) -> dict:
    return auth_headers_for(owner)


@pytest_asyncio.fixture
async def other_owner_headers(other_owner: User) -> dict:
    return auth_headers_for(other_owner)


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict:
    return auth_headers_for(admin)


@pytest_asyncio.fixture
async def test_venue(db_session: AsyncSession, owner: User) -> Venue:
    """Venue owned by `owner`, no ratings yet."""
    return await _persist(db_session, Venue(name="Riverside Sports Club", address="1 River Rd", owner_id=owner.id))


@pytest_asyncio.fixture
async def other_venue(db_session: AsyncSession, other_owner: User) -> Venue:
    return await _persist(db_session, Venue(name="Hilltop Arena", address="9 Hill St", owner_id=other_owner.id))


@pytest_asyncio.fixture
async def test_sport(db_session: AsyncSession) -> Sport:
    return await _persist(db_session, Sport(name="Badminton"))


@pytest_asyncio.fixture
async def make_booking(db_session: AsyncSession, test_venue: Venue, test_sport: Sport) -> Callable:
    """
    Insert a booking row directly, bypassing the engine.
    Used for history the engine would refuse to create (past dates).
    """

    async def factory(
        user: User,
        days: int = 1,
        court: str = "C1",
        start: str = "10:00",
        end: str = "11:00",
        status: str = "confirmed",
        venue: Venue = None,
    ) -> Booking:
        return await _persist(
            db_session,
            Booking(
                user_id=user.id,
                venue_id=(venue or test_venue).id,
                court=court,
                sport_id=test_sport.id,
                date=days_from_today(days),
                start_time=start,
                end_time=end,
                duration=60,
                total_price=40.0,
                payment_status="pending",
                status=status,
            ),
        )

    return factory


@pytest.fixture
def booking_payload(test_venue: Venue, test_sport: Sport) -> Callable:
    venue_id = test_venue.id
    sport_id = test_sport.id

    def build(
        court: str = "C1",
        start: str = "10:00",
        end: str = "11:00",
        days: int = 1,
        price: float = 40.0,
        venue_id: int = venue_id,
        sport_id: int = sport_id,
    ) -> dict:
        return {
            "venue_id": venue_id,
            "court": court,
            "sport_id": sport_id,
            "date": days_from_today(days).isoformat(),
            "time_slot": {"start": start, "end": end},
            "total_price": price,
        }

    return build
