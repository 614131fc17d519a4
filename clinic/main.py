# clinic/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clinic import __version__
from clinic.core.config import settings
from clinic.core.errors import register_exception_handlers
from clinic.db.sql import init_db
from clinic.routers import (
    appointments,
    auth,
    consultations,
    doctors,
    health,
    notifications,
    reschedule,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables on startup; nothing to tear down.
    """
    await init_db()
    logger.info("Clinic API started (env=%s)", settings.APP_ENV)
    yield


app = FastAPI(
    title="Clinic Scheduling API",
    version=__version__,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Routing
app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(appointments.router, prefix=settings.API_PREFIX)
app.include_router(reschedule.router, prefix=settings.API_PREFIX)
app.include_router(doctors.router, prefix=settings.API_PREFIX)
app.include_router(consultations.router, prefix=settings.API_PREFIX)
app.include_router(notifications.router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    return {"message": "Clinic Scheduling API running"}
