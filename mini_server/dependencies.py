"""FastAPI dependencies resolving the services created at startup."""

from fastapi import Request

from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.services.app_service import PublicationRegistry
from mini_server.services.dashboard_service import DashboardLayoutStore
from mini_server.services.project_service import ProjectRegistry


def get_store(request: Request) -> SQLDocumentStore:
    return request.app.state.store


def get_project_registry(request: Request) -> ProjectRegistry:
    return request.app.state.projects


def get_publication_registry(request: Request) -> PublicationRegistry:
    return request.app.state.apps


def get_dashboard_store(request: Request) -> DashboardLayoutStore:
    return request.app.state.dashboard
