"""
Venue Booking API - Main Application Entry Point

Occasion ticketing for the venue sites and the staff dashboard:
- Share-link ticket purchases with a concurrency-safe capacity commit
- Square payments and Resend email behind explicit interfaces
- Redis caching of dashboard occasion listings
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from venue_booking.core.config import get_settings
from venue_booking.core.errors import DomainError
from venue_booking.core.logging import setup_logging, get_logger
from venue_booking.core.metrics import metrics_endpoint
from venue_booking.api.router import api_router, functions_router
from venue_booking.api.middleware import RequestLoggingMiddleware
from venue_booking.api.routes.functions import CORS_HEADERS
from venue_booking.db.session import dispose_engine
from venue_booking.services.cache_service import get_redis, close_redis

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        payments_configured=settings.payments_configured,
    )

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    # Cleanup
    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Occasion ticketing API with concurrency-safe capacity and payments",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Render domain errors in the `{success: false, error}` envelope."""
    if exc.after_payment:
        logger.critical("domain_error_after_payment", code=exc.code.value, error=exc.message)
    else:
        logger.info("domain_error", code=exc.code.value, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
        headers=CORS_HEADERS,
    )


# Routes
app.include_router(functions_router)
app.include_router(api_router)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    redis_client = await get_redis()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": "connected" if redis_client else "disabled",
        "payments": "configured" if settings.payments_configured else "missing",
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
