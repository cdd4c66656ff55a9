import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import models
from .config import settings
from .database import engine
from .errors import ErrorKind, ServiceError
from .logging_config import setup_logging
from .outbox_poller import run_outbox_poller
from .routers import booking_router, catalog_router

import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi_limiter import FastAPILimiter

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("travel_booking")

# Create database tables on startup
models.Base.metadata.create_all(bind=engine)


async def init_rate_limiter():
    """Connect FastAPILimiter to Redis; returns the client, or None when disabled or unreachable."""
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting disabled.")
        return None
    try:
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
        return redis_client
    except (RedisError, OSError) as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("Starting background tasks...")
    redis_client = await init_rate_limiter()
    poller_task = asyncio.create_task(run_outbox_poller())

    yield  # The application is now running

    logger.info("Shutting down background tasks...")
    if redis_client is not None:
        await redis_client.close()

    poller_task.cancel()
    try:
        await poller_task
    except asyncio.CancelledError:
        logger.info("Outbox poller task successfully cancelled.")


app = FastAPI(
    title="Travel Booking API",
    description="Paged catalog search and booking lifecycle for hotels, vehicles and packages.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "errors": [exc.to_dict()]},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Same envelope as service errors; the location prefix ("body", "query") is dropped from paths.
    errors = [
        {
            "type": ErrorKind.INVALID_REQUEST.value,
            "path": [str(part) for part in error["loc"][1:]],
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Invalid request", "errors": errors},
    )


app.include_router(booking_router.router)
app.include_router(catalog_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Travel Booking API"}
