"""Shared fixtures: in-memory database, API client and seed helpers."""

import os
import uuid
from datetime import date, timedelta

# Settings are read on first import of clinic
os.environ.setdefault("SQL_DSN", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic.core.security import create_access_token, hash_password
from clinic.db.base import utcnow
from clinic.db.sql import get_session, init_db
from clinic.main import app
from clinic.modules.appointments.conflicts import parse_hhmm
from clinic.modules.doctors.models import DoctorAvailability
from clinic.modules.users.models import User

PASSWORD = "Secret123"
PASSWORD_HASH = hash_password(PASSWORD)

MONDAY, TUESDAY, WEDNESDAY = 0, 1, 2


def next_weekday(weekday: int) -> date:
    """The next date (1-7 days ahead) falling on weekday, Monday=0."""
    today = utcnow().date()
    ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=ahead)


def auth(user: User) -> dict:
    token = create_access_token(subject=str(user.id), role=user.role, email=user.email)
    return {"Authorization": f"Bearer {token}"}


async def create_user(session: AsyncSession, role: str, **fields) -> User:
    user = User(
        email=fields.pop("email", f"{role}-{uuid.uuid4().hex[:8]}@example.com"),
        password_hash=PASSWORD_HASH,
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", role.title()),
        role=role,
        is_active=True,
        **fields,
    )
    session.add(user)
    await session.commit()
    return user


async def set_hours(session: AsyncSession, doctor_id, hours: dict) -> None:
    """hours: {"Monday": ("09:00", "17:00"), ...}; every listed day is enabled."""
    for day, (start, end) in hours.items():
        session.add(
            DoctorAvailability(
                doctor_id=doctor_id,
                day_of_week=day,
                enabled=True,
                start_time=parse_hhmm(start),
                end_time=parse_hhmm(end),
            )
        )
    await session.commit()


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, expire_on_commit=False, autoflush=False, class_=AsyncSession
    )


@pytest.fixture
async def db(session_factory):
    """A single session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """API client; every request gets its own session, like production."""

    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


class Seeder:
    """Seeds data for API tests through short-lived sessions."""

    def __init__(self, session_factory):
        self._factory = session_factory

    async def user(self, role: str, **fields) -> User:
        async with self._factory() as session:
            return await create_user(session, role, **fields)

    async def hours(self, doctor: User, hours: dict) -> None:
        async with self._factory() as session:
            await set_hours(session, doctor.id, hours)

    async def count(self, model, *where) -> int:
        async with self._factory() as session:
            stmt = select(func.count()).select_from(model).where(*where)
            return (await session.execute(stmt)).scalar_one()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
async def doctor(seed):
    """A doctor working Monday and Wednesday 09:00-17:00."""
    user = await seed.user("doctor", first_name="Gregory", last_name="House")
    await seed.hours(user, {"Monday": ("09:00", "17:00"), "Wednesday": ("09:00", "17:00")})
    return user


@pytest.fixture
async def patient(seed):
    return await seed.user("patient", first_name="Ann", last_name="Lee")


@pytest.fixture
async def other_patient(seed):
    return await seed.user("patient", first_name="Bob", last_name="Stone")


async def book(client, patient, doctor, day, hhmm, **extra):
    payload = {
        "patientId": str(patient.id),
        "doctorId": str(doctor.id),
        "requestedDate": day.isoformat(),
        "requestedTime": hhmm,
        "reason": "Checkup",
        **extra,
    }
    return await client.post("/api/appointments", json=payload, headers=auth(patient))


async def set_status(client, doctor, appt_id, status, **extra):
    return await client.patch(
        f"/api/appointments/{appt_id}/status",
        json={"status": status, **extra},
        headers=auth(doctor),
    )
