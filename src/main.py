"""FastAPI application entry point with lifespan management."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.clients import router as clients_router
from src.api.health import router as health_router
from src.api.middleware import RequestContextMiddleware
from src.api.permissions import router as permissions_router
from src.api.tax_filings import router as tax_filings_router
from src.api.users import router as users_router
from src.authz.invalidation import listen_for_invalidations
from src.authz.permissions import seed_default_permissions
from src.core.config import settings
from src.core.database import create_engine, create_session_factory, session_scope
from src.core.logging import configure_logging, get_logger
from src.core.redis import create_redis_pool
from src.core.sentry import init_sentry

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle resources.

    Startup:
        - Configure structured logging
        - Initialize Sentry error tracking
        - Create database engine and session factory
        - Seed the permission catalog and default role grants
        - Establish Redis connection pool
        - Start the permission cache invalidation listener

    Shutdown:
        - Stop the invalidation listener
        - Close Redis connections
        - Dispose database engine
    """
    # Configure logging first
    configure_logging()
    logger.info("Starting application", environment=settings.environment)

    # Initialize error tracking
    init_sentry()

    # Create database engine and session factory
    app.state.db_engine = create_engine()
    app.state.async_session = create_session_factory(app.state.db_engine)
    logger.info("Database engine created")

    # Without a catalog every non-admin request is denied
    async with session_scope(app.state.async_session) as session:
        created = await seed_default_permissions(session)
    logger.info("Permission catalog seeded", created=created)

    # Create Redis connection pool
    app.state.redis = await create_redis_pool()
    logger.info("Redis pool created")

    listener = asyncio.create_task(listen_for_invalidations(app.state.redis))

    yield

    # Shutdown
    logger.info("Shutting down application")

    listener.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await listener

    # Close Redis connections
    await app.state.redis.aclose()
    logger.info("Redis pool closed")

    # Dispose database engine
    await app.state.db_engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="Tax Office Back Office",
    description="Staff roles, permissions, and tax filing tracking for a tax preparation office",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request context middleware
app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health_router)
app.include_router(permissions_router)
app.include_router(users_router)
app.include_router(clients_router)
app.include_router(tax_filings_router)
