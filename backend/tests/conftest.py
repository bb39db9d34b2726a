# tests/conftest.py - Shared test fixtures
import os
import uuid
from datetime import date
from typing import Optional

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"

from models import Base, Profile, UserRoleAssignment, AppRole, Project, TRLLevel, ProjectStatus
from auth import AuthService
from database import get_db_session
from main import app

TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_profile(db_session, email: str, role: Optional[AppRole] = None) -> Profile:
    """Create a profile, with a role row only when ``role`` is given"""
    profile = Profile(
        id=str(uuid.uuid4()),
        email=email,
        full_name=email.split("@")[0].title(),
        password_hash=AuthService.hash_password(TEST_PASSWORD),
        is_active=True,
    )
    db_session.add(profile)
    if role is not None:
        db_session.add(UserRoleAssignment(user_id=profile.id, role=role))
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def test_user(db_session):
    """A signed-up user with no role assignment (regular_user)"""
    return await create_profile(db_session, "regular@metrology.dev")


@pytest_asyncio.fixture
async def technician(db_session):
    return await create_profile(db_session, "technician@metrology.dev", AppRole.TECHNICIAN)


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await create_profile(db_session, "admin@metrology.dev", AppRole.ADMIN)


@pytest_asyncio.fixture
async def test_project(db_session, technician):
    project = Project(
        id=str(uuid.uuid4()),
        name="Optical Sensor",
        description="Fibre-optic strain sensor",
        current_trl=TRLLevel.TRL3,
        target_trl=TRLLevel.TRL6,
        status=ProjectStatus.IN_PROGRESS,
        start_date=date(2025, 3, 1),
        created_by=technician.id,
    )
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


def get_auth_headers(user: Profile) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token({"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}
