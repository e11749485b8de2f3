import logging

import sentry_sdk
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from mini_server.app_factory import lifespan
from mini_server.config import get_settings
from mini_server.exceptions import MiniServerError
from mini_server.logging_config import setup_logging
from mini_server.middleware.timing import TimingMiddleware
from mini_server.routes.apps import router as apps_router
from mini_server.routes.dashboard import router as dashboard_router
from mini_server.routes.database import router as database_router
from mini_server.routes.health import router as health_router
from mini_server.routes.models import router as models_router
from mini_server.routes.projects import router as projects_router

logger = logging.getLogger(__name__)


def _init_sentry(dsn: str | None) -> None:
    if dsn:
        sentry_sdk.init(
            dsn=dsn,
            # Set traces_sample_rate to 1.0 to capture 100%
            # of transactions for tracing.
            traces_sample_rate=1.0,
        )
    else:
        logger.warning("SENTRY_DSN is not set, skipping Sentry initialization")


def create_app() -> FastAPI:
    """Build the FastAPI application from the current settings."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    _init_sentry(settings.SENTRY_DSN)

    app = FastAPI(title="mini-server", lifespan=lifespan)

    # ---------------------------------------------------------------------------
    # Middleware
    # ---------------------------------------------------------------------------

    app.add_middleware(TimingMiddleware, slow_request_ms=settings.SLOW_REQUEST_MS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------------------------------
    # Error translation
    # ---------------------------------------------------------------------------

    @app.exception_handler(MiniServerError)
    async def handle_mini_server_error(request: Request, exc: MiniServerError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "details": jsonable_encoder(exc.details)},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request", "details": {"errors": jsonable_encoder(exc.errors())}},
        )

    # ---------------------------------------------------------------------------
    # Routers
    # ---------------------------------------------------------------------------

    app.include_router(health_router)
    app.include_router(database_router, prefix="/api")
    app.include_router(projects_router, prefix="/api")
    app.include_router(apps_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")
    app.include_router(models_router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root():
        if not settings.FRONTEND_URL:
            raise HTTPException(status_code=404, detail="No frontend configured")
        return RedirectResponse(settings.FRONTEND_URL)

    return app


app = create_app()
