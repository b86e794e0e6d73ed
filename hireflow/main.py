# hireflow/main.py
"""
HireFlow API: application factory state, lifespan and middleware.

Everything stateful is built in the lifespan and attached to app.state;
routes receive it through hireflow.routes.dependencies.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from hireflow.auth.verify import GoogleTokenVerifier
from hireflow.config import settings
from hireflow.db.pool import DatabasePoolManager
from hireflow.db.schema import create_tables
from hireflow.infrastructure.observability.logging import get_logger, log_request, setup_logging
from hireflow.middleware.cors import CORSMiddleware
from hireflow.middleware.request_context import RequestContextMiddleware
from hireflow.pipeline.stages import StagePolicy
from hireflow.repositories.analytics_repository import AnalyticsRepository
from hireflow.repositories.campaign_store import build_campaign_store
from hireflow.repositories.user_repository import UserRepository
from hireflow.routes import account, campaigns, communication, functions, health, insights, pipeline
from hireflow.services.analytics_service import AnalyticsTracker
from hireflow.services.communication_service import AIEnhancer, DraftStore
from hireflow.services.feedback_service import FeedbackService
from hireflow.services.kv_store import KeyValueStore

# Setup logging before creating the app
setup_logging(log_level="DEBUG" if settings.debug else "INFO")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        storage_backend=settings.STORAGE_BACKEND,
    )

    kv = KeyValueStore(settings)
    db = DatabasePoolManager(settings) if settings.database_configured else None
    startup_tasks = []

    try:
        logger.info("Initializing key-value store")
        await kv.initialize()
        startup_tasks.append("kv_store")

        if db is not None:
            logger.info("Initializing database pool")
            await db.initialize()
            startup_tasks.append("database_pool")
            await create_tables(db)
        else:
            logger.warning("DATABASE_URL not set, running in dev mode")

        campaign_store = build_campaign_store(settings.STORAGE_BACKEND, kv, db)
        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        # Clean up in reverse order
        if "database_pool" in startup_tasks:
            try:
                await db.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up database pool", error=str(cleanup_error))

        if "kv_store" in startup_tasks:
            await kv.close()

        raise

    analytics_repository = AnalyticsRepository(db) if db is not None else None

    app.state.kv = kv
    app.state.db = db
    app.state.campaign_store = campaign_store
    app.state.stage_policy = StagePolicy(settings.STAGE_FALLBACK_POLICY)
    app.state.user_repository = UserRepository(db, kv)
    app.state.analytics_repository = analytics_repository
    app.state.analytics_tracker = AnalyticsTracker(kv, analytics_repository)
    app.state.feedback_service = FeedbackService(kv, analytics_repository)
    app.state.draft_store = DraftStore(kv)
    app.state.ai_enhancer = AIEnhancer(settings.AI_ENHANCE_DELAY_S)
    app.state.token_verifier = GoogleTokenVerifier(settings)

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")

    shutdown_errors = []

    await kv.close()

    if db is not None:
        try:
            logger.info("Closing database pool")
            await db.close()
        except Exception as e:
            logger.error("Error closing database pool", error=str(e))
            shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="HireFlow",
    description="Recruitment pipeline: campaigns, candidate kanban, bulk actions and analytics",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware runs in reverse order of registration: CORS first, then request context
app.add_middleware(RequestContextMiddleware)
app.add_middleware(CORSMiddleware, allowed_origins=settings.ALLOWED_ORIGINS)

# Include routers
app.include_router(health.router)
app.include_router(campaigns.router)
app.include_router(pipeline.router)
app.include_router(communication.router)
app.include_router(account.router)
app.include_router(insights.router)
app.include_router(functions.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        request.method,
        request.url.path,
        response.status_code,
        round(process_time, 2),
        request_id=getattr(request.state, "request_id", None),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
