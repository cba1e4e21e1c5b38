"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from library_api.api import router as api_router
from library_api.api.errors import register_exception_handlers
from library_api.core.config import get_settings
from library_api.core.database import Base, engine, get_db
from library_api.core.logging import get_logger, setup_logging
from library_api.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from library_api.services.import_worker import ImportWorkerPool
from library_api.services.job_tracker import ImportJobTracker, InMemoryJobStore

settings = get_settings()

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        f"Starting {settings.APP_NAME}",
        extra={
            "extra_fields": {
                "environment": settings.ENVIRONMENT,
                "debug": settings.DEBUG,
            }
        },
    )

    try:
        import library_api.models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables verified/created")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
            ],
        )
        logger.info("Sentry initialized successfully")

    app.state.job_tracker = ImportJobTracker(
        InMemoryJobStore(
            ttl_seconds=settings.IMPORT_JOB_TTL_SECONDS,
            max_entries=settings.IMPORT_JOB_MAX_ENTRIES,
        )
    )
    app.state.import_pool = ImportWorkerPool(
        worker_count=settings.IMPORT_WORKER_COUNT,
        queue_capacity=settings.IMPORT_QUEUE_CAPACITY,
    )
    app.state.import_pool.start()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    app.state.import_pool.shutdown(wait=True)


app = FastAPI(
    title=settings.APP_NAME,
    description="REST API for managing library books, with CSV bulk import",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and monitoring.

    Returns basic application health status.
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health/ready")
def readiness_check():
    """
    Readiness check endpoint.

    Verifies the database is reachable and the import workers are running.
    """
    try:
        db = next(get_db())
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "disconnected"

    pool = getattr(app.state, "import_pool", None)
    workers_status = "running" if pool is not None and pool.is_running else "stopped"

    ready = db_status == "connected" and workers_status == "running"

    return {
        "status": "ready" if ready else "not_ready",
        "checks": {
            "database": db_status,
            "import_workers": workers_status,
        },
    }


app.include_router(api_router, prefix=settings.API_V1_PREFIX)


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "library_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    run()
