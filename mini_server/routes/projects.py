import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.dependencies import get_project_registry, get_publication_registry, get_store
from mini_server.models.apps import PublishedApp
from mini_server.models.projects import Project, ProjectVersion
from mini_server.models.request import (
    ConvertToAppRequest,
    CreateProjectRequest,
    CreateVersionRequest,
    ReleaseVersionRequest,
    UpdateProjectRequest,
)
from mini_server.models.responses import DataResponse, LinkedResponse, PageMeta, PageResponse
from mini_server.services.app_service import PublicationRegistry
from mini_server.services.project_service import ProjectRegistry

# ---------------------------------------------------------------------------
# Router initialization
# ---------------------------------------------------------------------------

router = APIRouter(tags=["projects"])
logger = logging.getLogger(__name__)


def _project_links(project_id: str) -> dict:
    return {"self": f"/api/projects/{project_id}", "versions": f"/api/projects/{project_id}/versions"}


def _app_links(app: PublishedApp, project_id: str) -> dict:
    return {"self": f"/api/apps/{app.id}", "project": f"/api/projects/{project_id}"}


# ---------------------------------------------------------------------------
# Project endpoints
# ---------------------------------------------------------------------------


@router.get("/projects", response_model=PageResponse[Project])
async def list_projects(
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    store: SQLDocumentStore = Depends(get_store),
    projects: ProjectRegistry = Depends(get_project_registry),
):
    limit, offset = store.page_bounds(limit, offset)
    items, count = await projects.list_projects(limit=limit, offset=offset)
    return {"data": items, "meta": PageMeta(count=count, limit=limit, offset=offset)}


@router.post("/projects", response_model=LinkedResponse[Project], status_code=201)
async def create_project(request: CreateProjectRequest, projects: ProjectRegistry = Depends(get_project_registry)):
    """
    Create a draft project from the prompt of its first generation.

    Args:
        request: Prompt, optional model and optional presentation fields

    Returns:
        The new project, without versions
    """
    project = await projects.create_project(
        request.prompt,
        model=request.model,
        name=request.name,
        description=request.description,
        icon=request.icon,
    )
    return {"data": project, "links": _project_links(project.id)}


@router.get("/published-projects", response_model=DataResponse[List[Project]])
async def list_published_projects(projects: ProjectRegistry = Depends(get_project_registry)):
    return {"data": await projects.list_published()}


@router.get("/projects/{project_id}", response_model=LinkedResponse[Project])
async def get_project(project_id: str, projects: ProjectRegistry = Depends(get_project_registry)):
    project = await projects.get_project(project_id)
    return {"data": project, "links": _project_links(project.id)}


@router.put("/projects/{project_id}", response_model=DataResponse[Project])
async def update_project(
    project_id: str, request: UpdateProjectRequest, projects: ProjectRegistry = Depends(get_project_registry)
):
    """Patch name, description, icon or status. Versions are never touched."""
    project = await projects.update_metadata(project_id, request.model_dump(exclude_none=True))
    return {"data": project}


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(project_id: str, projects: ProjectRegistry = Depends(get_project_registry)):
    await projects.delete_project(project_id)
    return Response(status_code=204)


@router.post("/projects/{project_id}/publish", response_model=DataResponse[Project])
async def publish_project(project_id: str, projects: ProjectRegistry = Depends(get_project_registry)):
    return {"data": await projects.publish(project_id)}


# ---------------------------------------------------------------------------
# Version endpoints
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/versions", response_model=DataResponse[List[ProjectVersion]])
async def list_versions(project_id: str, projects: ProjectRegistry = Depends(get_project_registry)):
    return {"data": await projects.list_versions(project_id)}


@router.post("/projects/{project_id}/versions", response_model=DataResponse[Project], status_code=201)
async def create_version(
    project_id: str, request: CreateVersionRequest, projects: ProjectRegistry = Depends(get_project_registry)
):
    """Append the next version and make it current.

    Raw generator output is split into source code and metadata first; the
    metadata names the project while it still has its default presentation.
    """
    if request.source_code is not None:
        project = await projects.append_version(project_id, request.prompt, request.source_code, request.model)
    else:
        project = await projects.append_generated_version(
            project_id,
            request.prompt,
            output=request.raw_output,
            stream_lines=request.stream,
            model=request.model,
        )
    return {"data": project}


@router.get("/projects/{project_id}/versions/{version_number}", response_model=DataResponse[ProjectVersion])
async def get_version(
    project_id: str, version_number: int, projects: ProjectRegistry = Depends(get_project_registry)
):
    return {"data": await projects.get_version(project_id, version_number)}


@router.delete("/projects/{project_id}/versions/{version_number}", response_model=DataResponse[Project])
async def delete_version(
    project_id: str, version_number: int, projects: ProjectRegistry = Depends(get_project_registry)
):
    """Delete a version that is neither current nor the only one; answers 409 otherwise."""
    return {"data": await projects.delete_version(project_id, version_number)}


@router.post("/projects/{project_id}/versions/{version_number}/switch", response_model=DataResponse[Project])
async def switch_version(
    project_id: str, version_number: int, projects: ProjectRegistry = Depends(get_project_registry)
):
    return {"data": await projects.switch_version(project_id, version_number)}


# ---------------------------------------------------------------------------
# Publishing endpoints
# ---------------------------------------------------------------------------


@router.post("/projects/{project_id}/convert", response_model=LinkedResponse[PublishedApp])
async def convert_to_app(
    project_id: str,
    request: ConvertToAppRequest,
    apps: PublicationRegistry = Depends(get_publication_registry),
):
    """
    Freeze a version's source code into an installable app.

    Args:
        project_id: Project to publish from
        request: Version number and optional price (defaults to 0)

    Returns:
        The published app with links to itself and its project
    """
    app = await apps.convert_version_to_app(project_id, request.version, request.price)
    return {"data": app, "links": _app_links(app, project_id)}


@router.post("/projects/{project_id}/release", response_model=LinkedResponse[PublishedApp])
async def release_version(
    project_id: str,
    request: ReleaseVersionRequest,
    apps: PublicationRegistry = Depends(get_publication_registry),
):
    app = await apps.release_version(project_id, request.version_number, request.price)
    return {"data": app, "links": _app_links(app, project_id)}
