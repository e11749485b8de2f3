import logging

from fastapi import APIRouter, Depends, Query

from mini_server.dependencies import get_dashboard_store, get_publication_registry
from mini_server.models.dashboard import DashboardLayout
from mini_server.models.request import AddWidgetRequest, SaveDashboardLayoutRequest
from mini_server.models.responses import DataResponse
from mini_server.services.app_service import PublicationRegistry
from mini_server.services.dashboard_service import DashboardLayoutStore

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
logger = logging.getLogger(__name__)


@router.get("/layout", response_model=DataResponse[DashboardLayout])
async def get_layout(
    prune: bool = Query(False, description="Drop widgets whose app no longer exists"),
    dashboard: DashboardLayoutStore = Depends(get_dashboard_store),
    apps: PublicationRegistry = Depends(get_publication_registry),
):
    """Return the saved layout, or an empty one if nothing was saved yet."""
    if prune:
        known = [app.id for app in await apps.all_apps()]
        return {"data": await dashboard.prune_orphans(known)}
    return {"data": await dashboard.get_layout()}


@router.put("/layout", response_model=DataResponse[DashboardLayout])
async def save_layout(
    request: SaveDashboardLayoutRequest, dashboard: DashboardLayoutStore = Depends(get_dashboard_store)
):
    return {"data": await dashboard.save_layout(request.widgets)}


@router.post("/layout/widgets", response_model=DataResponse[DashboardLayout])
async def add_widget(
    request: AddWidgetRequest,
    dashboard: DashboardLayoutStore = Depends(get_dashboard_store),
    apps: PublicationRegistry = Depends(get_publication_registry),
):
    """Place an existing app on the first free grid slot."""
    await apps.get_app(request.app_id)
    return {"data": await dashboard.add_widget(request.app_id, w=request.w, h=request.h)}


@router.delete("/layout/widgets/{widget_id}", response_model=DataResponse[DashboardLayout])
async def remove_widget(widget_id: str, dashboard: DashboardLayoutStore = Depends(get_dashboard_store)):
    return {"data": await dashboard.remove_widget(widget_id)}
