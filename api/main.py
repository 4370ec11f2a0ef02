"""FastAPI application for the StackAlchemy API.

This module creates and configures the main FastAPI application,
including routers, middleware, error handlers, CORS settings, and
lifecycle events.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.errors import ErrorCode, ProcedureError

from .config import Settings, get_settings
from .dependencies import Container, build_container
from .logging import configure_logging
from .middleware import RequestLoggingMiddleware, TimingMiddleware
from .routers import ask_router, health_router, projects_router

logger = structlog.get_logger(__name__)

ContainerFactory = Callable[[Settings], Container]

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INTERNAL_SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds and starts the container on startup, stores it on ``app.state``
    and releases it on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup is complete.
    """
    settings: Settings = app.state.settings
    logger.info("application_starting", version=settings.app_version, debug=settings.debug)

    container = app.state.container_factory(settings)
    try:
        await container.startup()
        logger.info("dependencies_initialized")
    except Exception as e:
        logger.error("dependency_initialization_failed", error=str(e))
        await container.shutdown()
        raise

    app.state.container = container

    yield

    logger.info("application_stopping")
    await container.shutdown()
    app.state.container = None
    logger.info("shutdown_complete")


async def procedure_error_handler(request: Request, exc: ProcedureError) -> JSONResponse:
    """Render a ``ProcedureError`` as ``{"code", "message"}``."""
    return JSONResponse(
        status_code=STATUS_BY_CODE[exc.code],
        content={"code": exc.code.value, "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as BAD_REQUEST."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"code": ErrorCode.BAD_REQUEST.value, "message": message},
    )


def create_app(
    settings: Settings | None = None,
    container_factory: ContainerFactory = build_container,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment.
        container_factory: Builds the component container at startup.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Link GitHub repositories to projects, index their files and commits "
            "with AI summaries and embeddings, and ask questions about the code."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container_factory = container_factory
    app.state.container = None

    app.add_exception_handler(ProcedureError, procedure_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(TimingMiddleware)

    # Health routes are at root level (/health)
    app.include_router(health_router)

    app.include_router(projects_router, prefix=settings.api_prefix)
    app.include_router(ask_router, prefix=settings.api_prefix)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Root endpoint returning API information."""
        return JSONResponse(
            content={
                "name": settings.app_name,
                "version": settings.app_version,
                "docs": "/docs",
                "health": "/health",
            }
        )

    return app


app = create_app()
