# clinic/modules/appointments/locks.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID
from weakref import WeakValueDictionary

from sqlalchemy.ext.asyncio import AsyncSession

from clinic.modules.appointments.errors import DoctorNotFound
from clinic.modules.users import repository as users_repo
from clinic.modules.users.models import User, UserRole


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand. A lock disappears once no
    coroutine holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self.get(key)
        async with lock:
            yield


# Serializes every read-decide-write on a doctor's calendar within this process.
booking_locks = KeyedLock()


@asynccontextmanager
async def lock_doctor_calendar(session: AsyncSession, doctor_id: UUID) -> AsyncIterator[User]:
    """
    Hold the doctor's calendar for one decision.

    Takes the in-process lock for the doctor and a row lock on the doctor's
    user row (PostgreSQL; SQLite ignores FOR UPDATE), yields the doctor and
    commits before letting go. Bookings, availability changes and day
    sweeps all go through here, so none of them decides on data another one
    is about to change. An exception in the body skips the commit.
    """
    async with booking_locks.hold(str(doctor_id)):
        doctor = await users_repo.get_with_role(
            session, doctor_id, UserRole.DOCTOR, for_update=True
        )
        if doctor is None:
            raise DoctorNotFound()
        yield doctor
        await session.commit()
