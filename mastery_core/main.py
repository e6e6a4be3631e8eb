"""
Mastery Progression & Credentialing Core

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mastery_core.api.middleware.request_context import RequestContextMiddleware
from mastery_core.api.v1 import router as api_v1_router
from mastery_core.config import get_settings
from mastery_core.database import close_db, init_db
from mastery_core.engines.progression.errors import (
    GenerationError,
    GradingError,
    InvalidTransitionError,
    LearnerNotFoundError,
    LevelConfigurationError,
    PathwayError,
    ProgressInvariantError,
    ProgressionError,
    ProgressNotFoundError,
)
from mastery_core.logging_config import configure_logging, get_logger
from mastery_core.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Mastery Progression & Credentialing Core

    Tracks learners through ordered mastery levels per subject, adapts lesson rigor to
    recent performance, verifies level completion and issues certificates.

    ## Features

    - **Levels**: A-T in strict order, with a CONTINUE / DIVERT fork at P and
      maintenance levels Beyond P and Beyond T
    - **Lessons**: adaptive lesson requests, exercise-set completion, XP
    - **Verification**: exam, project, performance or questionnaire; pass at 60 skill points
    - **Pathways**: enrollment tracks, fast-track, relearn, transition
    - **Certificates**: CERT / RLN / TRN verification ids
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first; CORS is added last so it wraps everything
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
]

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain error -> HTTP status, most specific first
_ERROR_STATUS = (
    (LearnerNotFoundError, status.HTTP_404_NOT_FOUND),
    (ProgressNotFoundError, status.HTTP_404_NOT_FOUND),
    (ProgressInvariantError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (PathwayError, status.HTTP_400_BAD_REQUEST),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
    (GradingError, status.HTTP_502_BAD_GATEWAY),
    (LevelConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    headers = {}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
        if status_code >= 500:
            content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ProgressionError)
async def progression_exception_handler(request: Request, exc: ProgressionError):
    """Translate domain errors into HTTP responses."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500 and status_code != status.HTTP_502_BAD_GATEWAY:
        logger.exception("Progression configuration error: %s", exc)
    else:
        logger.warning("%s: %s", type(exc).__name__, exc)
    return _error_response(
        request,
        status_code,
        {"detail": str(exc), "code": type(exc).__name__},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Rejected input that passed schema validation (empty submission, bad sample)."""
    logger.warning("Rejected request: %s", exc)
    return _error_response(request, status.HTTP_400_BAD_REQUEST, {"detail": str(exc)})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, {"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        {"detail": "Validation error", "errors": errors},
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__}
    else:
        content = {"detail": "Internal server error"}
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
        ai_configured=settings.ai_configured,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mastery_core.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
