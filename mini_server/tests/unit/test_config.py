import pytest

from mini_server.config import get_settings


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "mini_server.toml"
    monkeypatch.setenv("MINI_SERVER_CONFIG", str(path))
    for name in ("PORT", "DATABASE_URL", "FRONTEND_URL", "LOG_LEVEL", "SENTRY_DSN", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


def test_missing_file_uses_defaults(config_file):
    settings = get_settings()

    assert settings.PORT == 10000
    assert settings.DATABASE_URL == "sqlite+aiosqlite:///data.db"
    assert settings.LIST_LIMIT_DEFAULT == 100
    assert settings.LIST_LIMIT_MAX == 1000
    assert settings.SEED_DEFAULT_APPS is True
    assert settings.RESEED_ON_RESET is False
    assert settings.METADATA.enabled is False
    assert settings.REGISTERED_MODELS == {}


def test_values_are_read_from_toml(config_file):
    config_file.write_text(
        """
[api]
port = 8080
frontend_url = "http://localhost:5173"

[database]
uri = "postgresql+psycopg://user:pass@db/mini"
list_limit_default = 20
list_limit_max = 200

[metadata]
enabled = true
model = "claude-3-5-haiku-20241022"

[registered_models.fast]
model_name = "claude-3-5-haiku-20241022"
name = "Fast"
""",
        encoding="utf-8",
    )

    settings = get_settings()

    assert settings.PORT == 8080
    assert settings.FRONTEND_URL == "http://localhost:5173"
    assert settings.DATABASE_URL == "postgresql+psycopg://user:pass@db/mini"
    assert (settings.LIST_LIMIT_DEFAULT, settings.LIST_LIMIT_MAX) == (20, 200)
    assert settings.METADATA.enabled is True
    assert settings.METADATA.model == "claude-3-5-haiku-20241022"
    assert settings.METADATA.max_tokens == 1024
    assert settings.REGISTERED_MODELS["fast"]["name"] == "Fast"


def test_environment_overrides_toml(config_file, monkeypatch):
    config_file.write_text('[api]\nport = 8080\n[database]\nuri = "sqlite+aiosqlite:///from-toml.db"\n')
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///from-env.db")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.PORT == 9000
    assert settings.DATABASE_URL == "sqlite+aiosqlite:///from-env.db"
    assert settings.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    "database_section",
    ["list_limit_max = 0", "list_limit_default = 0", "list_limit_default = 50\nlist_limit_max = 10"],
)
def test_invalid_list_limits_are_rejected(config_file, database_section):
    config_file.write_text(f"[database]\n{database_section}\n")

    with pytest.raises(ValueError):
        get_settings()
