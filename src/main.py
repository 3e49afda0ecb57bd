import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import settings
from src.limiter import limiter
from src.db import create_db_and_tables
from src.errors import AnalyticsError, NotFoundError
from src.api import tracking, analytics
from src.kafka_producer import (
    create_kafka_producer,
    close_kafka_producer,
    set_kafka_producer
)

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("AnalyticsAPI.Main")

service_start_time = time.monotonic()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")

    # Initialize dataset tables
    logger.info("Initializing datasets...")
    create_db_and_tables()
    logger.info("Dataset initialization completed.")

    # Initialize Kafka Producer, only needed when records go through the worker
    if settings.DATASET_WRITE_BACKEND == "kafka":
        logger.info("Initializing Kafka Producer...")
        set_kafka_producer(create_kafka_producer())
        logger.info("Kafka initialized.")
    yield
    logger.info("Application shutdown.")

    # Close Kafka Producer
    close_kafka_producer()

app = FastAPI(
    title="Studio Analytics API",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan
)

# Initialize the limiter with app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Set up CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    logger.info(
        f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms "
        f"ip={request.headers.get('cf-connecting-ip')} "
        f"country={request.headers.get('cf-ipcountry')} "
        f"ua={request.headers.get('user-agent')}"
    )
    return response


# Error handlers

def error_response(status_code: int, error: str, details: str = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={
        "error": error,
        "details": details or None,
        "code": status_code,
    })


@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc.status_code, exc.title, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        details = f"{location}: {first.get('msg')}"
    else:
        details = "Invalid request"
    return error_response(400, "Validation failed", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        not_found = NotFoundError(f"The requested endpoint {request.url.path} does not exist")
        return JSONResponse(status_code=not_found.status_code, content={
            "error": not_found.title,
            "message": not_found.message,
            "code": not_found.status_code,
        })
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Application error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={
        "error": "Internal Server Error",
        "message": "An unexpected error occurred",
        "code": 500,
    })


# Routers
app.include_router(tracking.router)
app.include_router(analytics.router)

@app.get("/")
def read_root():
    return {
        "name": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": {
            "tracking": {
                "single": "POST /track",
                "batch": "POST /track/batch",
            },
            "analytics": {
                "stats": "GET /api/stats/{studio_id}",
                "realtime": "GET /api/realtime/{studio_id}",
                "revenue": "GET /api/revenue/{studio_id}",
                "content": "GET /api/content/{studio_id}/{content_id}",
            },
        },
    }

@app.get("/health")
def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - service_start_time, 3),
    }
