"""
Test fixtures - in-memory SQLite database, seeded building membership, HTTP clients per role
"""
from contextlib import asynccontextmanager

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

import agm_backend.models  # noqa: F401
from agm_backend.api.auth import create_access_token
from agm_backend.database import Base, enable_sqlite_foreign_keys, get_db
from agm_backend.main import app
from agm_backend.models.building import Building, BuildingUser
from agm_backend.services.link_service import LinkService
from agm_backend.services.meeting_service import MeetingService
from agm_backend.services.participant_tracker import ParticipantTracker

DIRECTOR_ID = "user-director"
OWNER_ID = "user-owner"
OUTSIDER_ID = "user-outsider"
BUILDING_ID = "bld-riverside"
OTHER_BUILDING_ID = "bld-harbour"


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Two buildings: a director and a leaseholder in Riverside, an outsider in Harbour"""
    db_session.add_all([
        Building(id=BUILDING_ID, name="Riverside Court"),
        Building(id=OTHER_BUILDING_ID, name="Harbour View"),
    ])
    await db_session.flush()
    db_session.add_all([
        BuildingUser(building_id=BUILDING_ID, user_id=DIRECTOR_ID, role="rtm-director"),
        BuildingUser(building_id=BUILDING_ID, user_id=OWNER_ID, role="leaseholder"),
        BuildingUser(building_id=OTHER_BUILDING_ID, user_id=OUTSIDER_ID, role="leaseholder"),
    ])
    await db_session.commit()

    return {
        "building_id": BUILDING_ID,
        "other_building_id": OTHER_BUILDING_ID,
        "director_id": DIRECTOR_ID,
        "owner_id": OWNER_ID,
        "outsider_id": OUTSIDER_ID,
    }


@pytest_asyncio.fixture()
async def meetings(db_session):
    return MeetingService(db_session)


@pytest_asyncio.fixture()
async def links(db_session, meetings):
    return LinkService(db_session, meetings=meetings)


@pytest_asyncio.fixture()
async def tracker(db_session, meetings):
    return ParticipantTracker(db_session, meetings=meetings)


@pytest_asyncio.fixture()
async def meeting(meetings, seed_data):
    """A scheduled meeting hosted by the director"""
    return await meetings.create_meeting(
        agm_id=7,
        building_id=seed_data["building_id"],
        host_id=seed_data["director_id"],
        title="Annual General Meeting 2026",
        description="Accounts, reserve fund and director elections",
    )


@asynccontextmanager
async def _client_for(db_session, user_id=None, email=None):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        if user_id:
            token = create_access_token(data={"sub": user_id, "email": email, "name": user_id.title()})
            ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """Authenticated as the building director"""
    async with _client_for(db_session, DIRECTOR_ID, "director@riverside.test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def owner_client(db_session, seed_data):
    async with _client_for(db_session, OWNER_ID, "owner@riverside.test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def outsider_client(db_session, seed_data):
    async with _client_for(db_session, OUTSIDER_ID, "outsider@harbour.test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def unauth_client(db_session, seed_data):
    async with _client_for(db_session) as ac:
        yield ac
