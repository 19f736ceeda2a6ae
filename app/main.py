import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import CORS_ORIGINS, DATABASE_URL, ENV
from app.core.database import Base, engine
from app.core.errors import register_exception_handlers
from app.core.logging_setup import configure_logging
from app.core.startup_checks import ensure_migrations_applied, validate_database_environment
from app.middleware.observability import ObservabilityMiddleware
from app.services.realtime import RealtimeBroadcaster
import app.models  # models must be registered before create_all

from app.routers.auth import router as auth_router
from app.routers.dashboard import router as dashboard_router
from app.routers.feedback import router as feedback_router
from app.routers.menu import router as menu_router
from app.routers.orders import router as orders_router
from app.routers.platform import router as platform_router
from app.routers.realtime import router as realtime_router
from app.routers.reservations import router as reservations_router
from app.routers.restaurants import router as restaurants_router
from app.routers.settings import router as settings_router
from app.routers.upload import router as upload_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)

# Built before the app so route handlers can depend on it from the first request.
broadcaster = RealtimeBroadcaster()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
            return
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(application: FastAPI):
    application.state.broadcaster.bind_loop(asyncio.get_running_loop())
    _startup_tasks()
    logger.info("%s ready env=%s", STARTUP_PREFIX, ENV)
    yield


app = FastAPI(
    title="Restaurant Ordering API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)
app.state.broadcaster = broadcaster

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

register_exception_handlers(app)

# Routers
app.include_router(auth_router)
app.include_router(restaurants_router)
app.include_router(settings_router)
app.include_router(menu_router)
app.include_router(orders_router)
app.include_router(reservations_router)
app.include_router(feedback_router)
app.include_router(dashboard_router)
app.include_router(upload_router)
app.include_router(platform_router)
app.include_router(realtime_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
