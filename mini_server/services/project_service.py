import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from mini_server.database.base_database import BaseDocumentStore
from mini_server.exceptions import (
    GenerationError,
    InvalidDocumentError,
    InvalidOperationError,
    NotFoundError,
    VersionNotFoundError,
)
from mini_server.models.documents import Document
from mini_server.models.generation import AppMetadata
from mini_server.models.projects import Project, ProjectStatus, ProjectVersion
from mini_server.parser.generation_parser import (
    METADATA_START,
    fold_stream_events,
    parse_sse_lines,
    split_generation_output,
)
from mini_server.services.collection import CollectionAccessor
from mini_server.services.metadata_service import MetadataGenerator

logger = logging.getLogger(__name__)

PROJECTS_COLLECTION = "projects"

DEFAULT_PROJECT_NAME = "Untitled Project"
DEFAULT_PROJECT_DESCRIPTION = ""
DEFAULT_PROJECT_ICON = "📋"

# Fields a metadata update may touch; everything else is owned by the registry
METADATA_FIELDS = ("name", "description", "icon", "status")


class ProjectRegistry:
    """Projects and their embedded, numbered versions.

    Each project is one document in the ``projects`` collection whose payload
    carries its own ``id``. Every change to a project goes through the store's
    serialized read-modify-write, so concurrent version appends never lose
    each other.
    """

    # ---------------------------------------------------------------------
    # Construction & helpers
    # ---------------------------------------------------------------------

    def __init__(self, store: BaseDocumentStore, metadata_generator: Optional[MetadataGenerator] = None):
        self.projects = CollectionAccessor(store, PROJECTS_COLLECTION)
        self.metadata_generator = metadata_generator

    async def _locate(self, project_id: str) -> Document:
        doc = await self.projects.find_one("id", project_id)
        if doc is not None:
            return doc

        # Payloads created through /api/db without an "id" are listed under their document id
        try:
            doc = await self.projects.get(project_id)
        except NotFoundError:
            raise NotFoundError("Project", project_id) from None
        if "id" in doc.data:
            raise NotFoundError("Project", project_id)
        return doc

    @staticmethod
    def _parse_all(docs: List[Document]) -> List[Project]:
        projects = []
        for doc in docs:
            try:
                projects.append(Project.from_document(doc))
            except InvalidDocumentError as e:
                logger.warning(f"Skipping malformed project document {doc.id}: {e.details['errors']}")
        return projects

    async def _mutate(self, project_id: str, change: Callable[[Project], None]) -> Project:
        doc = await self._locate(project_id)

        def apply(data: Dict[str, Any]) -> Dict[str, Any]:
            project = Project.from_document(doc.model_copy(update={"data": data}))
            change(project)
            project.updated_at = max(datetime.now(UTC), project.created_at)
            return project.to_data()

        updated = await self.projects.mutate(doc.id, apply)
        return Project.from_document(updated)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(
        self,
        prompt: str,
        model: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Project:
        """Create a draft project with no versions.

        Presentation fields given by the caller win. Missing ones come from the
        metadata generator when one is configured, otherwise from defaults.

        Raises:
            GenerationError: If the metadata generator is configured and fails.
        """
        if self.metadata_generator is not None and None in (name, description, icon):
            generated = await self.metadata_generator.generate(prompt)
            name = name if name is not None else generated.name
            description = description if description is not None else generated.description
            icon = icon if icon is not None else generated.icon

        now = datetime.now(UTC)
        project = Project(
            id=str(uuid.uuid4()),
            name=name if name is not None else DEFAULT_PROJECT_NAME,
            description=description if description is not None else DEFAULT_PROJECT_DESCRIPTION,
            icon=icon if icon is not None else DEFAULT_PROJECT_ICON,
            status=ProjectStatus.draft,
            current_version=0,
            initial_prompt=prompt,
            initial_model=model,
            versions=[],
            created_at=now,
            updated_at=now,
        )
        await self.projects.create(project.to_data())
        logger.info(f"Created project {project.id} ({project.name})")
        return project

    async def get_project(self, project_id: str) -> Project:
        return Project.from_document(await self._locate(project_id))

    async def list_projects(self, limit: Optional[int] = None, offset: int = 0) -> Tuple[List[Project], int]:
        """Return one page of projects and the size of the whole collection.

        Documents that do not parse as projects are logged and left out of the
        page, but still count towards the total.
        """
        page = await self.projects.list(limit=limit, offset=offset)
        return self._parse_all(page.documents), page.count

    async def list_published(self) -> List[Project]:
        return self._parse_all(await self.projects.find("status", ProjectStatus.published.value))

    async def delete_project(self, project_id: str) -> None:
        doc = await self._locate(project_id)
        if not await self.projects.delete(doc.id):
            raise NotFoundError("Project", project_id)
        logger.info(f"Deleted project {project_id}")

    async def update_metadata(self, project_id: str, fields: Dict[str, Any]) -> Project:
        """Patch name, description, icon and status; other keys are ignored."""
        patch = {key: value for key, value in fields.items() if key in METADATA_FIELDS and value is not None}
        if "status" in patch:
            try:
                patch["status"] = ProjectStatus(patch["status"])
            except ValueError as e:
                raise InvalidOperationError(
                    f"Invalid project status '{patch['status']}'",
                    {"allowed": [status.value for status in ProjectStatus]},
                ) from e

        def change(project: Project) -> None:
            for key, value in patch.items():
                setattr(project, key, value)

        project = await self._mutate(project_id, change)
        logger.info(f"Updated metadata of project {project_id}: {sorted(patch)}")
        return project

    async def publish(self, project_id: str) -> Project:
        return await self.update_metadata(project_id, {"status": ProjectStatus.published})

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def append_version(
        self, project_id: str, prompt: str, source_code: str, model: Optional[str] = None
    ) -> Project:
        """Add the next numbered version and make it current."""

        def change(project: Project) -> None:
            self._add_version(project, prompt, source_code, model)

        project = await self._mutate(project_id, change)
        logger.info(f"Appended version {project.current_version} to project {project_id}")
        return project

    async def append_generated_version(
        self,
        project_id: str,
        prompt: str,
        output: Optional[str] = None,
        stream_lines: Optional[List[str]] = None,
        model: Optional[str] = None,
    ) -> Project:
        """
        Append a version from raw generator output.

        The output is either the final text or the captured SSE lines of the
        generation stream. Its metadata block is stripped from the stored source
        code and, while the project still carries the default presentation
        fields, used to name and describe the project.

        Args:
            project_id: Project to append to
            prompt: Prompt that produced the output
            output: Final generated text, possibly with a metadata block
            stream_lines: Raw ``data:`` lines of the generation stream, used when ``output`` is None
            model: Model that produced the output

        Returns:
            The updated project

        Raises:
            GenerationError: If the stream reported an error or no source code was produced
        """
        if output is None:
            output, usage = fold_stream_events(parse_sse_lines(stream_lines or []))
            if usage is not None:
                logger.info(f"Generation for project {project_id} used {usage.total_tokens} tokens")

        has_metadata = METADATA_START in output
        source_code, metadata = split_generation_output(output)
        if not source_code:
            raise GenerationError("Generation produced no source code", {"project_id": project_id})

        def change(project: Project) -> None:
            self._add_version(project, prompt, source_code, model)
            if has_metadata:
                self._adopt_metadata(project, metadata)

        project = await self._mutate(project_id, change)
        logger.info(f"Appended generated version {project.current_version} to project {project_id}")
        return project

    @staticmethod
    def _add_version(project: Project, prompt: str, source_code: str, model: Optional[str]) -> None:
        number = project.latest_version_number + 1
        project.versions.append(
            ProjectVersion(
                id=str(uuid.uuid4()),
                project_id=project.id,
                version_number=number,
                prompt=prompt,
                source_code=source_code,
                model=model,
                created_at=datetime.now(UTC),
            )
        )
        project.current_version = number

    @staticmethod
    def _adopt_metadata(project: Project, metadata: AppMetadata) -> None:
        # Only fill fields nobody has set yet
        if project.name == DEFAULT_PROJECT_NAME:
            project.name = metadata.name
        if project.description == DEFAULT_PROJECT_DESCRIPTION:
            project.description = metadata.description
        if project.icon == DEFAULT_PROJECT_ICON:
            project.icon = metadata.icon

    async def switch_version(self, project_id: str, version_number: int) -> Project:
        def change(project: Project) -> None:
            if project.get_version(version_number) is None:
                raise VersionNotFoundError(project_id, version_number)
            project.current_version = version_number

        project = await self._mutate(project_id, change)
        logger.info(f"Switched project {project_id} to version {version_number}")
        return project

    async def delete_version(self, project_id: str, version_number: int) -> Project:
        """Remove a version that is neither the current nor the only one."""

        def change(project: Project) -> None:
            if project.get_version(version_number) is None:
                raise VersionNotFoundError(project_id, version_number)
            if len(project.versions) <= 1:
                raise InvalidOperationError(
                    "Cannot delete the only version of a project",
                    {"project_id": project_id, "version_number": version_number},
                )
            if version_number == project.current_version:
                raise InvalidOperationError(
                    "Cannot delete the current version of a project",
                    {"project_id": project_id, "version_number": version_number},
                )
            project.versions = [v for v in project.versions if v.version_number != version_number]

        project = await self._mutate(project_id, change)
        logger.info(f"Deleted version {version_number} of project {project_id}")
        return project

    async def list_versions(self, project_id: str) -> List[ProjectVersion]:
        project = await self.get_project(project_id)
        return sorted(project.versions, key=lambda v: v.version_number)

    async def get_version(self, project_id: str, version_number: int) -> ProjectVersion:
        project = await self.get_project(project_id)
        version = project.get_version(version_number)
        if version is None:
            raise VersionNotFoundError(project_id, version_number)
        return version
