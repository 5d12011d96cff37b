"""
Main FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import application modules
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.db.base import db_manager, initialize_redis, close_redis, redis_health_check
from app.api.router import api_router
from app.core.logging_config import setup_logging
from app.services.payment.methods import seed_default_methods

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting up {settings.APP_NAME}...")

    await db_manager.initialize()

    # SQLite databases are created in place; PostgreSQL is managed by Alembic
    if settings.is_sqlite:
        await db_manager.create_all()
        async with db_manager.get_master_session() as session:
            await seed_default_methods(session)

    health = await db_manager.health_check()
    logger.info(f"Database health: {health}")

    await initialize_redis()

    yield

    logger.info("Shutting down...")
    await close_redis()
    await db_manager.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="AI code generation with a credit ledger and reviewed payments",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS
allowed_origins = settings.cors_origins if settings.cors_origins else ["*"]
logger.info(f"CORS allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "endpoints": {
            "base": "/api",
            "auth": "/api/auth",
            "generate": "/api/generate",
            "generations": "/api/generations",
            "credits": "/api/credits",
            "payments": "/api/payments",
            "users": "/api/users",
            "admin": "/api/admin",
        }
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.
    Checks database and Redis connectivity.
    """
    db_health = await db_manager.health_check()
    redis_health = await redis_health_check()

    # Redis only backs rate limiting, so its absence degrades rather than fails
    is_healthy = db_health["master"]
    if is_healthy and redis_health.get("status") != "healthy":
        status_message = "degraded"
    elif is_healthy:
        status_message = "healthy"
    else:
        status_message = "unhealthy"

    return {
        "status": status_message,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": db_health,
        "redis": redis_health,
    }


# Metrics endpoint (if Prometheus is enabled)
if settings.PROMETHEUS_ENABLED:
    from prometheus_client import make_asgi_app
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors as {"error": ..., "code": ...}."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    # Don't expose internal errors in production
    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "InternalError"}
        )
    return JSONResponse(
        status_code=500,
        content={"error": str(exc), "code": "InternalError"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
