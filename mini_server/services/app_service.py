import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Tuple

from mini_server.database.base_database import BaseDocumentStore
from mini_server.exceptions import InvalidDocumentError, NotFoundError, VersionNotFoundError
from mini_server.models.apps import PublishedApp
from mini_server.models.documents import Document
from mini_server.services.collection import CollectionAccessor
from mini_server.services.project_service import ProjectRegistry

logger = logging.getLogger(__name__)

APPS_COLLECTION = "apps"


class PublicationRegistry:
    """Installable apps, either built in or frozen from a project version."""

    def __init__(self, store: BaseDocumentStore, projects: ProjectRegistry):
        self.apps = CollectionAccessor(store, APPS_COLLECTION)
        self.projects = projects

    async def _locate(self, app_id: str) -> Document:
        doc = await self.apps.find_one("id", app_id)
        if doc is not None:
            return doc

        # Apps written through /api/db without an "id" are listed under their document id
        try:
            doc = await self.apps.get(app_id)
        except NotFoundError:
            raise NotFoundError("App", app_id) from None
        if "id" in doc.data:
            raise NotFoundError("App", app_id)
        return doc

    @staticmethod
    def _parse_all(docs: List[Document]) -> List[PublishedApp]:
        apps = []
        for doc in docs:
            try:
                apps.append(PublishedApp.from_document(doc))
            except InvalidDocumentError as e:
                logger.warning(f"Skipping malformed app document {doc.id}: {e.details['errors']}")
        return apps

    async def _patch(self, app_id: str, changes: Dict[str, Any]) -> PublishedApp:
        doc = await self._locate(app_id)

        def apply(data: Dict[str, Any]) -> Dict[str, Any]:
            data.update(changes)
            return data

        return PublishedApp.from_document(await self.apps.mutate(doc.id, apply))

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def convert_version_to_app(
        self, project_id: str, version_number: int, price: Optional[float] = None
    ) -> PublishedApp:
        """Freeze a project version into an app keyed by the project id.

        Converting again replaces the earlier app's snapshot in place.

        Raises:
            NotFoundError: If the project does not exist.
            VersionNotFoundError: If the version is missing or has no source code.
        """
        project = await self.projects.get_project(project_id)
        version = project.get_version(version_number)
        if version is None or not version.source_code:
            raise VersionNotFoundError(project_id, version_number)

        snapshot = {
            "id": project.id,
            "name": project.name,
            "description": project.description,
            "icon": project.icon,
            "version": str(version.version_number),
            "price": price if price is not None else 0,
            "source_code": version.source_code,
            "prompt": version.prompt,
            "model": version.model,
            "status": "published",
            "project_id": project.id,
            "project_version": version.version_number,
        }

        async with self.apps.lock(project.id):
            existing = await self.apps.find_one("id", project.id)
            if existing is None:
                app = PublishedApp(installed=0, created_at=datetime.now(UTC), **snapshot)
                doc = await self.apps.create(app.to_data())
                logger.info(f"Published version {version_number} of project {project_id} as a new app")
            else:

                def apply(data: Dict[str, Any]) -> Dict[str, Any]:
                    data.update(snapshot)
                    return data

                doc = await self.apps.mutate(existing.id, apply)
                logger.info(f"Republished app {project.id} from version {version_number}")

        return PublishedApp.from_document(doc)

    async def release_version(
        self, project_id: str, version_number: int, price: Optional[float] = None
    ) -> PublishedApp:
        return await self.convert_version_to_app(project_id, version_number, price)

    # ------------------------------------------------------------------
    # App management
    # ------------------------------------------------------------------

    async def create_app(
        self,
        name: str,
        description: str = "",
        version: str = "1.0.0",
        price: float = 0,
        icon: str = "📱",
        source_code: Optional[str] = None,
        prompt: Optional[str] = None,
        model: Optional[str] = None,
        installed: bool = True,
        status: str = "draft",
        app_id: Optional[str] = None,
    ) -> PublishedApp:
        app = PublishedApp(
            id=app_id or str(uuid.uuid4()),
            name=name,
            description=description,
            version=version,
            price=price,
            icon=icon,
            installed=int(installed),
            source_code=source_code,
            prompt=prompt,
            model=model,
            status=status,
            created_at=datetime.now(UTC),
        )
        doc = await self.apps.create(app.to_data())
        logger.info(f"Created app {app.id} ({app.name})")
        return PublishedApp.from_document(doc)

    async def get_app(self, app_id: str) -> PublishedApp:
        return PublishedApp.from_document(await self._locate(app_id))

    async def list_apps(self, limit: Optional[int] = None, offset: int = 0) -> Tuple[List[PublishedApp], int]:
        page = await self.apps.list(limit=limit, offset=offset)
        return self._parse_all(page.documents), page.count

    async def all_apps(self) -> List[PublishedApp]:
        return self._parse_all(await self.apps.all())

    async def list_installed(self) -> List[PublishedApp]:
        return [app for app in await self.all_apps() if app.is_installed]

    async def list_store(self) -> List[PublishedApp]:
        return [app for app in await self.all_apps() if not app.is_installed]

    async def update_source_code(self, app_id: str, source_code: str) -> PublishedApp:
        app = await self._patch(app_id, {"source_code": source_code})
        logger.info(f"Replaced source code of app {app_id}")
        return app

    async def set_installed(self, app_id: str, installed: bool) -> PublishedApp:
        app = await self._patch(app_id, {"installed": int(installed)})
        logger.info(f"{'Installed' if installed else 'Uninstalled'} app {app_id}")
        return app

    async def delete_app(self, app_id: str) -> None:
        doc = await self._locate(app_id)
        if not await self.apps.delete(doc.id):
            raise NotFoundError("App", app_id)
        logger.info(f"Deleted app {app_id}")

    async def is_empty(self) -> bool:
        return await self.apps.count() == 0
