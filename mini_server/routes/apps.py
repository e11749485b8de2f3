import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.dependencies import get_publication_registry, get_store
from mini_server.models.apps import PublishedApp
from mini_server.models.request import CreateAppRequest, UpdateAppSourceCodeRequest
from mini_server.models.responses import DataResponse, PageMeta, PageResponse
from mini_server.services.app_service import PublicationRegistry

router = APIRouter(prefix="/apps", tags=["apps"])
logger = logging.getLogger(__name__)


@router.get("", response_model=PageResponse[PublishedApp])
async def list_apps(
    installed: Optional[bool] = Query(None, description="Only installed (true) or store (false) apps"),
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    store: SQLDocumentStore = Depends(get_store),
    apps: PublicationRegistry = Depends(get_publication_registry),
):
    limit, offset = store.page_bounds(limit, offset)
    if installed is None:
        items, count = await apps.list_apps(limit=limit, offset=offset)
    else:
        # The installed flag lives inside the payload, so partition in memory
        matching = await (apps.list_installed() if installed else apps.list_store())
        items, count = matching[offset : offset + limit], len(matching)
    return {"data": items, "meta": PageMeta(count=count, limit=limit, offset=offset)}


@router.post("", response_model=DataResponse[PublishedApp], status_code=201)
async def create_app(request: CreateAppRequest, apps: PublicationRegistry = Depends(get_publication_registry)):
    """Create an installed draft app that does not come from a project."""
    app = await apps.create_app(**request.model_dump())
    return {"data": app}


@router.get("/installed", response_model=DataResponse[List[PublishedApp]])
async def list_installed_apps(apps: PublicationRegistry = Depends(get_publication_registry)):
    return {"data": await apps.list_installed()}


@router.get("/store", response_model=DataResponse[List[PublishedApp]])
async def list_store_apps(apps: PublicationRegistry = Depends(get_publication_registry)):
    return {"data": await apps.list_store()}


@router.get("/{app_id}", response_model=DataResponse[PublishedApp])
async def get_app(app_id: str, apps: PublicationRegistry = Depends(get_publication_registry)):
    return {"data": await apps.get_app(app_id)}


@router.delete("/{app_id}", status_code=204)
async def delete_app(app_id: str, apps: PublicationRegistry = Depends(get_publication_registry)):
    await apps.delete_app(app_id)
    return Response(status_code=204)


@router.put("/{app_id}/source", response_model=DataResponse[PublishedApp])
async def update_app_source(
    app_id: str, request: UpdateAppSourceCodeRequest, apps: PublicationRegistry = Depends(get_publication_registry)
):
    return {"data": await apps.update_source_code(app_id, request.source_code)}


@router.post("/{app_id}/install", response_model=DataResponse[PublishedApp])
async def install_app(app_id: str, apps: PublicationRegistry = Depends(get_publication_registry)):
    return {"data": await apps.set_installed(app_id, True)}


@router.post("/{app_id}/uninstall", response_model=DataResponse[PublishedApp])
async def uninstall_app(app_id: str, apps: PublicationRegistry = Depends(get_publication_registry)):
    return {"data": await apps.set_installed(app_id, False)}
