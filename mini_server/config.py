import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings

load_dotenv(override=True)

DEFAULT_CONFIG_PATH = "mini_server.toml"


class MetadataSettings(BaseModel):
    enabled: bool = False
    model: str = "claude-3-haiku-20240307"
    temperature: float = 0.3
    max_tokens: int = 1024


class Settings(BaseSettings):
    """mini-server configuration settings."""

    # Environment variables
    DATABASE_URL: str = "sqlite+aiosqlite:///data.db"
    SENTRY_DSN: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None

    # API configuration
    HOST: str = "0.0.0.0"
    PORT: int = 10000
    RELOAD: bool = False
    CORS_ORIGINS: List[str] = ["*"]
    FRONTEND_URL: Optional[str] = None
    SLOW_REQUEST_MS: int = 1000

    # Database connection pool settings (ignored by SQLite)
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_TIMEOUT: int = 10
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False

    # Listing
    LIST_LIMIT_DEFAULT: int = 100
    LIST_LIMIT_MAX: int = 1000

    # Seeding
    SEED_DEFAULT_APPS: bool = True
    RESEED_ON_RESET: bool = False

    # Project metadata generation
    METADATA: MetadataSettings = MetadataSettings()

    # Registered models configuration
    REGISTERED_MODELS: Dict[str, Dict[str, Any]] = {}

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        return tomli.load(f)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    load_dotenv(override=True)

    config = _load_toml(Path(os.getenv("MINI_SERVER_CONFIG", DEFAULT_CONFIG_PATH)))
    settings_dict: Dict[str, Any] = {}

    # Load API config
    api = config.get("api", {})
    settings_dict.update(
        {
            "HOST": api.get("host", "0.0.0.0"),
            "PORT": int(os.getenv("PORT", api.get("port", 10000))),
            "RELOAD": bool(api.get("reload", False)),
            "CORS_ORIGINS": api.get("cors_origins", ["*"]),
            "FRONTEND_URL": os.getenv("FRONTEND_URL", api.get("frontend_url")),
            "SLOW_REQUEST_MS": int(api.get("slow_request_ms", 1000)),
            "SENTRY_DSN": os.getenv("SENTRY_DSN", None),
            "ANTHROPIC_API_KEY": os.getenv("ANTHROPIC_API_KEY", None),
        }
    )

    # Load database config
    database = config.get("database", {})
    settings_dict.update(
        {
            "DATABASE_URL": os.getenv("DATABASE_URL", database.get("uri", "sqlite+aiosqlite:///data.db")),
            "DB_POOL_SIZE": database.get("pool_size", 20),
            "DB_MAX_OVERFLOW": database.get("max_overflow", 30),
            "DB_POOL_RECYCLE": database.get("pool_recycle", 3600),
            "DB_POOL_TIMEOUT": database.get("pool_timeout", 10),
            "DB_POOL_PRE_PING": database.get("pool_pre_ping", True),
            "DB_ECHO": database.get("echo", False),
            "LIST_LIMIT_DEFAULT": database.get("list_limit_default", 100),
            "LIST_LIMIT_MAX": database.get("list_limit_max", 1000),
        }
    )

    if settings_dict["LIST_LIMIT_MAX"] <= 0:
        raise ValueError("'list_limit_max' must be positive in the database configuration")
    if not 0 < settings_dict["LIST_LIMIT_DEFAULT"] <= settings_dict["LIST_LIMIT_MAX"]:
        raise ValueError("'list_limit_default' must be between 1 and 'list_limit_max'")

    # Load seed config
    seed = config.get("seed", {})
    settings_dict.update(
        {
            "SEED_DEFAULT_APPS": seed.get("enabled", True),
            "RESEED_ON_RESET": seed.get("reseed_on_reset", False),
        }
    )

    # Load metadata generation config
    if "metadata" in config:
        metadata = config["metadata"]
        settings_dict["METADATA"] = MetadataSettings(
            enabled=metadata.get("enabled", False),
            model=metadata.get("model", "claude-3-haiku-20240307"),
            temperature=metadata.get("temperature", 0.3),
            max_tokens=metadata.get("max_tokens", 1024),
        )

    # Load registered models if available
    if "registered_models" in config:
        settings_dict["REGISTERED_MODELS"] = config["registered_models"]

    # Load logging config
    logging_config = config.get("logging", {})
    settings_dict.update(
        {
            "LOG_LEVEL": os.getenv("LOG_LEVEL", logging_config.get("level", "INFO")).upper(),
            "LOG_FILE": logging_config.get("file"),
        }
    )

    return Settings(**settings_dict)
