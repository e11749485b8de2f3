import httpx
import pytest
import pytest_asyncio

from mini_server.config import get_settings
from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.services.app_service import PublicationRegistry
from mini_server.services.dashboard_service import DashboardLayoutStore
from mini_server.services.project_service import ProjectRegistry

TEST_CONFIG = """
[api]
slow_request_ms = 5000

[seed]
enabled = true
reseed_on_reset = false

[logging]
level = "DEBUG"

[registered_models.test-model]
model_name = "claude-test-1"
name = "Test Model"
description = "Used by the test suite"
icon = "🧪"
speed = 5
power = 2
cost = 1
"""


@pytest_asyncio.fixture
async def store(tmp_path):
    """Document store on a throwaway SQLite file."""
    store = SQLDocumentStore(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def projects(store):
    return ProjectRegistry(store)


@pytest.fixture
def apps(store, projects):
    return PublicationRegistry(store, projects)


@pytest.fixture
def dashboard(store):
    return DashboardLayoutStore(store)


@pytest.fixture
def test_settings(tmp_path, monkeypatch):
    """Point get_settings() at a temporary config file and database."""
    config_path = tmp_path / "mini_server.toml"
    config_path.write_text(TEST_CONFIG, encoding="utf-8")
    monkeypatch.setenv("MINI_SERVER_CONFIG", str(config_path))
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.delenv("FRONTEND_URL", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def client(test_settings):
    """HTTP client bound to a fully started application."""
    from mini_server.api import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
