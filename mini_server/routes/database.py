import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from mini_server.config import Settings, get_settings
from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.dependencies import get_publication_registry, get_store
from mini_server.exceptions import NotFoundError
from mini_server.models.documents import Document
from mini_server.models.request import CreateDocumentRequest, UpdateDocumentRequest
from mini_server.models.responses import DataResponse, LinkedResponse, MessageResponse, PageMeta, PageResponse
from mini_server.seed import seed_default_apps
from mini_server.services.app_service import PublicationRegistry

# ---------------------------------------------------------------------------
# Router initialization
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/db", tags=["database"])
logger = logging.getLogger(__name__)


def _document_links(doc: Document) -> dict:
    return {"self": f"/api/db/{doc.collection}/{doc.id}"}


# ---------------------------------------------------------------------------
# Store-wide endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=DataResponse[List[str]])
async def list_collections(store: SQLDocumentStore = Depends(get_store)):
    """Names of all collections that currently hold documents."""
    return {"data": await store.collections()}


# Registered before /{collection} so "reset" is never taken for a collection name
@router.post("/reset", response_model=MessageResponse)
async def reset_database(
    store: SQLDocumentStore = Depends(get_store),
    apps: PublicationRegistry = Depends(get_publication_registry),
    settings: Settings = Depends(get_settings),
):
    """Delete every document in every collection."""
    await store.reset()
    if settings.RESEED_ON_RESET:
        await seed_default_apps(apps)
    return {"message": "Database reset successfully"}


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------


@router.get("/{collection}", response_model=PageResponse[Document])
async def list_documents(
    collection: str,
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    store: SQLDocumentStore = Depends(get_store),
):
    """
    List documents of a collection in insertion order.

    Args:
        collection: Collection name
        limit: Page size (defaults to the configured page size, capped at the configured maximum)
        offset: Number of documents to skip; negative values count as 0

    Returns:
        The page, with ``meta.count`` holding the size of the whole collection
    """
    limit, offset = store.page_bounds(limit, offset)
    page = await store.list(collection, limit=limit, offset=offset)
    return {"data": page.documents, "meta": PageMeta(count=page.count, limit=limit, offset=offset)}


@router.post("/{collection}", response_model=LinkedResponse[Document], status_code=201)
async def create_document(
    collection: str, request: CreateDocumentRequest, store: SQLDocumentStore = Depends(get_store)
):
    doc = await store.create(collection, request.data)
    return {"data": doc, "links": _document_links(doc)}


@router.get("/{collection}/{document_id}", response_model=LinkedResponse[Document])
async def get_document(collection: str, document_id: str, store: SQLDocumentStore = Depends(get_store)):
    doc = await store.get(collection, document_id)
    return {"data": doc, "links": _document_links(doc)}


@router.put("/{collection}/{document_id}", response_model=LinkedResponse[Document])
async def update_document(
    collection: str,
    document_id: str,
    request: UpdateDocumentRequest,
    store: SQLDocumentStore = Depends(get_store),
):
    """Replace the whole payload of a document."""
    doc = await store.update(collection, document_id, request.data)
    return {"data": doc, "links": _document_links(doc)}


@router.delete("/{collection}/{document_id}", status_code=204)
async def delete_document(collection: str, document_id: str, store: SQLDocumentStore = Depends(get_store)):
    if not await store.delete(collection, document_id):
        raise NotFoundError("Document", f"{collection}/{document_id}")
    return Response(status_code=204)
