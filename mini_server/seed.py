"""Built-in app catalogue inserted into an empty ``apps`` collection."""

import logging
from pathlib import Path
from typing import Any, Dict, List

from mini_server.services.app_service import PublicationRegistry

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"


def _template(name: str) -> str:
    return (TEMPLATES_DIR / name).read_text(encoding="utf-8")


def default_apps() -> List[Dict[str, Any]]:
    """Catalogue entries; only the bundled apps ship source code."""
    return [
        {
            "app_id": "notepad",
            "name": "Notepad",
            "description": "A simple notepad for quick notes and ideas.",
            "version": "1.0.0",
            "price": 0,
            "icon": "📝",
            "installed": True,
            "source_code": _template("notepad.js"),
        },
        {
            "app_id": "db-viewer",
            "name": "DB Viewer",
            "description": "Browse and manage your database collections and documents.",
            "version": "1.0.0",
            "price": 0,
            "icon": "🗃️",
            "installed": True,
            "source_code": _template("db_viewer.js"),
        },
        {
            "app_id": "to-do-list",
            "name": "To-Do List",
            "description": "Manage your tasks and stay organized.",
            "version": "1.2.3",
            "price": 2.99,
            "icon": "✅",
            "installed": False,
        },
        {
            "app_id": "calendar",
            "name": "Calendar",
            "description": "View and schedule your events easily.",
            "version": "2.1.0",
            "price": 4.99,
            "icon": "📅",
            "installed": False,
        },
        {
            "app_id": "chess",
            "name": "Chess",
            "description": "Play chess and challenge your mind.",
            "version": "1.8.7",
            "price": 7.50,
            "icon": "♟️",
            "installed": False,
        },
        {
            "app_id": "file-drive",
            "name": "File Drive",
            "description": "Store and access your files securely.",
            "version": "3.0.2",
            "price": 9.99,
            "icon": "🗂️",
            "installed": False,
        },
        {
            "app_id": "calculator",
            "name": "Calculator",
            "description": "Perform quick calculations and solve equations.",
            "version": "2.4.1",
            "price": 1.99,
            "icon": "🧮",
            "installed": False,
        },
        {
            "app_id": "stocks",
            "name": "Stocks",
            "description": "Track stock prices and market trends.",
            "version": "1.5.9",
            "price": 8.99,
            "icon": "📈",
            "installed": False,
        },
    ]


async def seed_default_apps(apps: PublicationRegistry) -> int:
    """Insert the catalogue when no app exists yet. Returns the number of apps created."""
    if not await apps.is_empty():
        logger.info("Apps already exist, skipping seeding")
        return 0

    catalogue = default_apps()
    for entry in catalogue:
        await apps.create_app(status="published", **entry)
    logger.info(f"Seeded {len(catalogue)} default apps")
    return len(catalogue)
