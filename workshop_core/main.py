"""
Workshop Engine API - Entry Point.

Repair status and queue engine for depot (workshop) repairs of a
field-service management product. REST API with FastAPI used by the admin
dashboard and the technicians' mobile app.

Configuration:
- FastAPI app with automatic OpenAPI docs
- CORS for the frontends
- Exception handler for engine errors (WorkshopException)
- Redis connection lifecycle when STORAGE_BACKEND=redis

Endpoints:
- GET  /                                    - Root endpoint (API info)
- GET  /api/docs                            - OpenAPI documentation (Swagger UI)
- GET  /api/health                          - Health check
- POST /api/intake/{job_id}                 - Register equipment intake
- GET  /api/status/*                        - Status, history, transition table
- POST /api/status/{job_id}/transition      - Status transition
- GET  /api/workshop/queue                  - Workshop queue
- POST /api/workshop/queue/{job_id}/claim   - Claim a queued job
- POST /api/workshop/jobs/{job_id}/*     - Schedule delivery, mark returned
- GET  /api/workshop/capacity|metrics       - Capacity and KPIs
- GET|PUT /api/workshop/settings            - Workshop settings
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from workshop_core import __version__
from workshop_core.config import config
from workshop_core.exceptions import WorkshopException
from workshop_core.models.error import ErrorResponse
from workshop_core.repositories.redis_repository import RedisRepository
from workshop_core.utils.logger import setup_logger

from workshop_core.routers import health, intake, status as status_router, workshop


# ============================================================================
# FASTAPI INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Workshop Engine API",
    description="""
    Repair status and queue engine for equipment brought into the workshop.

    ## Features

    - **Intake**: Register equipment arriving at (or travelling to) the workshop
    - **Status**: Fixed repair lifecycle with an append-only audit trail
    - **Queue**: Unclaimed jobs ranked by priority and waiting time
    - **Claims**: Technicians take jobs under workshop and personal capacity ceilings
    - **Metrics**: Repair time, on-time rate and capacity KPIs

    ## Concurrency

    Every write to a job is serialized by a per-job lock. Two technicians
    claiming the same job get exactly one **200** and one **409 ALREADY_CLAIMED**.
    Lock contention beyond the bounded wait returns **503 BUSY** (safe to retry).

    ## Tenancy

    Every tenant-scoped endpoint requires the `X-Company-ID` header.
    """,
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)


# ============================================================================
# MIDDLEWARE - CORS
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"]
)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

# error_code → HTTP status
STATUS_MAP = {
    # 404 NOT FOUND
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,

    # 400 BAD REQUEST
    "INVALID_TRANSITION": status.HTTP_400_BAD_REQUEST,
    "INVALID_SETTINGS": status.HTTP_400_BAD_REQUEST,

    # 409 CONFLICT
    "ALREADY_EXISTS": status.HTTP_409_CONFLICT,
    "ALREADY_CLAIMED": status.HTTP_409_CONFLICT,
    "CAPACITY_EXCEEDED": status.HTTP_409_CONFLICT,

    # 503 SERVICE UNAVAILABLE (retryable)
    "BUSY": status.HTTP_503_SERVICE_UNAVAILABLE,
    "VERSION_CONFLICT": status.HTTP_503_SERVICE_UNAVAILABLE,
    "STORAGE_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE
}


@app.exception_handler(WorkshopException)
async def workshop_exception_handler(request: Request, exc: WorkshopException):
    """
    Global handler for engine exceptions.

    Maps WorkshopException.error_code to an HTTP status and returns a
    consistent ErrorResponse body.

    Logging by severity:
        - 500+: ERROR (503 BUSY at WARNING, it is expected under load)
        - 409: WARNING (races and capacity, useful for auditing)
        - 400/404: INFO (expected client errors)
    """
    http_status = STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    error_response = ErrorResponse(
        success=False,
        error=exc.error_code,
        message=exc.message,
        data=exc.data if exc.data else None
    )

    if exc.error_code == "BUSY":
        logging.warning(f"Busy: {exc.message}")
    elif http_status >= 500:
        logging.error(f"Server error: {exc.message}", exc_info=True)
    elif http_status == status.HTTP_409_CONFLICT:
        logging.warning(f"Conflict: {exc.message}")
    else:
        logging.info(f"Client error: {exc.message}")

    headers = {"Retry-After": "1"} if http_status == status.HTTP_503_SERVICE_UNAVAILABLE else None

    return JSONResponse(
        status_code=http_status,
        content=error_response.model_dump(),
        headers=headers
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Fallback handler for unhandled exceptions.

    In local environment the error detail is included in data; elsewhere
    only a generic message is returned.
    """
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    error_response = ErrorResponse(
        success=False,
        error="INTERNAL_SERVER_ERROR",
        message="Internal server error. Contact the administrator.",
        data={"detail": str(exc)} if config.ENVIRONMENT == "local" else None
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump()
    )


# ============================================================================
# STARTUP/SHUTDOWN EVENTS
# ============================================================================


@app.on_event("startup")
async def startup_event():
    """
    Configure the system on app start.

    - Configure logging with setup_logger()
    - Validate configuration
    - Connect to Redis when STORAGE_BACKEND=redis
    """
    setup_logger()
    config.validate()

    if config.STORAGE_BACKEND == "redis":
        await RedisRepository().connect()

    logging.info("Workshop Engine API started")
    logging.info(f"Environment: {config.ENVIRONMENT}")
    logging.info(f"Storage backend: {config.STORAGE_BACKEND}")
    logging.info(f"CORS Origins: {config.ALLOWED_ORIGINS}")


@app.on_event("shutdown")
async def shutdown_event():
    """Close the Redis connection pool if one was opened."""
    logging.info("Workshop Engine API shutting down...")
    if config.STORAGE_BACKEND == "redis":
        await RedisRepository().disconnect()


# ============================================================================
# ROUTERS
# ============================================================================

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(intake.router, prefix="/api", tags=["Intake"])
app.include_router(status_router.router, prefix="/api", tags=["Status"])
app.include_router(workshop.router, prefix="/api", tags=["Workshop"])


# ============================================================================
# ROOT ENDPOINT
# ============================================================================


@app.get("/", tags=["Root"])
async def root():
    """Basic API metadata and documentation links."""
    return {
        "message": "Workshop Engine API - Repair Status & Queue",
        "version": __version__,
        "docs": "/api/docs",
        "redoc": "/api/redoc",
        "health": "/api/health"
    }
