import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mini_server.config import get_settings
from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.seed import seed_default_apps
from mini_server.services.app_service import PublicationRegistry
from mini_server.services.dashboard_service import DashboardLayoutStore
from mini_server.services.metadata_service import MetadataGenerator
from mini_server.services.project_service import ProjectRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the document store, wire the registries and seed the app catalogue."""
    settings = get_settings()

    store = SQLDocumentStore(
        settings.DATABASE_URL,
        list_limit_default=settings.LIST_LIMIT_DEFAULT,
        list_limit_max=settings.LIST_LIMIT_MAX,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        echo=settings.DB_ECHO,
    )
    await store.initialize()

    metadata_generator = None
    if settings.METADATA.enabled:
        metadata_generator = MetadataGenerator(
            model=settings.METADATA.model,
            temperature=settings.METADATA.temperature,
            max_tokens=settings.METADATA.max_tokens,
            api_key=settings.ANTHROPIC_API_KEY,
        )
        logger.info(f"Project metadata generation enabled with {settings.METADATA.model}")

    projects = ProjectRegistry(store, metadata_generator)
    apps = PublicationRegistry(store, projects)

    app.state.store = store
    app.state.projects = projects
    app.state.apps = apps
    app.state.dashboard = DashboardLayoutStore(store)

    if settings.SEED_DEFAULT_APPS:
        await seed_default_apps(apps)

    logger.info("mini-server started")
    try:
        yield
    finally:
        await store.close()
        logger.info("mini-server stopped")
