import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from referral_tracker.api.endpoints import candidates, health
from referral_tracker.core.config import Settings, settings as default_settings
from referral_tracker.core.database import Database
from referral_tracker.core.deps import enforce_api_rate_limit
from referral_tracker.core.errors import (
    ConflictError,
    NotFoundError,
    RateLimitError,
    ReferralError,
    StorageError,
    ValidationError,
)
from referral_tracker.core.logging_config import (
    REQUEST_ID_HEADER,
    bind_request_id,
    new_request_id,
    reset_request_id,
    setup_logging,
)
from referral_tracker.core.rate_limiter import RateLimiter, get_rate_limiter
from referral_tracker.core.storage import StorageBackend, get_storage

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    RateLimitError: 429,
    StorageError: 503,
}


def _status_code_for(exc: ReferralError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def referral_error_handler(request: Request, exc: ReferralError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=_status_code_for(exc),
        content={"success": False, **exc.to_dict()},
        headers=headers
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]) or "body", "message": error["msg"]}
        for error in exc.errors()
    ]
    return await referral_error_handler(request, ValidationError(errors))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": "Route not found" if exc.status_code == 404 else exc.detail}
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    storage: Optional[StorageBackend] = None,
    rate_limiter: Optional[RateLimiter] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    The database handle and attachment store are created in the lifespan
    unless supplied here (tests pass their own). The per-IP rate limiter
    comes from settings unless one is passed in.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for startup and shutdown events.
        """
        # Startup
        if settings.CONFIGURE_LOGGING:
            setup_logging(settings.LOG_LEVEL, json_logs=settings.JSON_LOGS, service=settings.PROJECT_NAME)
        logger.info("Starting up Referral Tracker API...")

        # Only tear down what we created here
        owns_database = getattr(app.state, "database", None) is None
        if owns_database:
            app.state.database = Database(settings.DATABASE_URL)
        owns_storage = getattr(app.state, "storage", None) is None
        if owns_storage:
            app.state.storage = get_storage(settings)

        app.state.database.startup(create_tables=settings.AUTO_CREATE_TABLES)
        logger.info("Database initialized successfully")

        yield

        # Shutdown
        logger.info("Shutting down Referral Tracker API...")
        if owns_database:
            app.state.database.shutdown()
        if owns_storage:
            app.state.storage.shutdown(wait=False)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Employee referral tracking: candidates, resumes, status and stats",
        lifespan=lifespan
    )
    app.state.database = database
    app.state.storage = storage
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else get_rate_limiter(settings)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Tag logs with a request id, echo it back, and log one line per request."""
        request_id = new_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = bind_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - started) * 1000, 1)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                }
            )
            return response
        finally:
            reset_request_id(token)

    app.add_exception_handler(ReferralError, referral_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    # Every /api route shares one per-IP budget
    api_dependencies = [Depends(enforce_api_rate_limit)]
    app.include_router(candidates.router, prefix=settings.API_V1_STR, dependencies=api_dependencies)
    app.include_router(health.router, prefix=settings.API_V1_STR, dependencies=api_dependencies)

    @app.get("/")
    async def root():
        """Root endpoint - API health check"""
        return {
            "message": "Referral Tracker API",
            "version": "1.0.0",
            "status": "healthy"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Enable auto-reload during development
        log_level="info"
    )
