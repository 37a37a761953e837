"""CoursePath API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursepath.certificates.router import router as certificates_router
from coursepath.certificates.service import CertificateService
from coursepath.config import get_settings
from coursepath.core.context import get_request_id
from coursepath.core.database import init_async_cassandra, shutdown_async_cassandra
from coursepath.core.logging import configure_structlog, get_logger
from coursepath.core.middleware import RequestContextMiddleware
from coursepath.core.redis import init_redis, shutdown_redis
from coursepath.courses.router import router as courses_router
from coursepath.courses.service import CourseCatalogService
from coursepath.enrollments.router import router as enrollments_router
from coursepath.enrollments.service import EnrollmentService
from coursepath.health import router as health_router
from coursepath.progress.router import router as progress_router
from coursepath.progress.service import ProgressService
from coursepath.quizzes.router import router as quizzes_router
from coursepath.quizzes.service import QuizService
from coursepath.storage import FirebaseStorageService
from coursepath.video.router import router as video_router
from coursepath.video.service import VideoCompletionService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def build_services(app: FastAPI, session, redis_client=None) -> None:
    """Wire the domain services onto ``app.state`` for dependency injection."""
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    catalog = CourseCatalogService(session=session, keyspace=keyspace)
    enrollment_service = EnrollmentService(session=session, keyspace=keyspace)
    video_service = VideoCompletionService(
        session=session,
        keyspace=keyspace,
        threshold_percent=settings.video_completion_threshold_percent,
        max_retries=settings.video_merge_max_retries,
    )
    quiz_service = QuizService(
        session=session,
        keyspace=keyspace,
        enrollment_service=enrollment_service,
        video_service=video_service,
        max_retries=settings.quiz_attempt_max_retries,
    )
    progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        catalog=catalog,
        enrollment_service=enrollment_service,
        video_service=video_service,
        quiz_service=quiz_service,
        max_retries=settings.progress_update_max_retries,
    )
    certificate_service = CertificateService(
        session=session,
        keyspace=keyspace,
        storage=FirebaseStorageService(settings),
        catalog=catalog,
        progress_service=progress_service,
        settings=settings,
        redis_client=redis_client,
    )

    app.state.catalog_service = catalog
    app.state.enrollment_service = enrollment_service
    app.state.video_service = video_service
    app.state.quiz_service = quiz_service
    app.state.progress_service = progress_service
    app.state.certificate_service = certificate_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional: certificate issuance falls back to the storage-layer
    # uniqueness constraint alone
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except (RedisError, OSError) as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - certificate issuance lock disabled",
        )

    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")
        build_services(app, session, redis_client)
        logger.info("services_initialized", redis_enabled=redis_client is not None)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def error_response(
    request: Request,
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> ORJSONResponse:
    """Uniform error envelope carrying the request id for support lookups."""
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": request_id,
            **extra,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Log every failure and answer with the envelope; never leak internals."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        # 503 details are safe ("Progress service unavailable", storage down)
        exposed = (
            exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        )
        return error_response(
            request,
            exc.status_code,
            str(exc.detail) if exposed else "Internal server error",
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            details=[
                {
                    "field": ".".join(str(loc) for loc in err.get("loc", [])),
                    "message": err.get("msg", "Invalid value"),
                }
                for err in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays False so Starlette never renders stack traces
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progress, quizzes and certificates - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(enrollments_router)
    app.include_router(video_router)
    app.include_router(quizzes_router)
    app.include_router(progress_router)
    app.include_router(certificates_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "CoursePath API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coursepath.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload and settings.is_development,
        workers=None if settings.api_reload else settings.api_workers,
    )
