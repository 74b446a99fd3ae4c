"""Application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from sqlalchemy import select

# Rate limiting
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .api.api import api_router
from .api.middleware import register_exception_handlers
from .core import get_settings
from .deps import SessionDep
from .infrastructure.database import engine, AsyncSessionFactory
from .infrastructure.redis_client import close_redis, get_redis
from .models import Base
from .services.settings_service import SettingsService

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Ensure runtime settings exist
    async with AsyncSessionFactory() as s:
        await SettingsService(s).seed_defaults()
        await s.commit()

    logger.info("tourbook started")
    yield

    # Shutdown
    await close_redis()


# Create FastAPI app
app = FastAPI(
    title="Tourbook API",
    description="Activity booking platform: capacity, reservations and webhook ingestion",
    version="1.0.0",
    lifespan=lifespan
)

# Attach rate-limiter
app.state.limiter = limiter

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)

app.add_middleware(SlowAPIMiddleware)

# Exception handling
register_exception_handlers(app)

app.include_router(api_router, prefix="/api")


# Health check
@app.get("/healthz")
async def healthz(sess: SessionDep):
    """Health check endpoint."""
    status = {"db": "ok", "redis": "ok"}

    try:
        await sess.scalar(select(1))
    except Exception:
        logger.exception("database health check failed")
        status["db"] = "error"

    try:
        await get_redis().ping()
    except (RedisError, OSError):
        status["redis"] = "error"

    return status
