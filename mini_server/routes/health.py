"""Health check routes for monitoring service status."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from mini_server.database.sql_document_store import SQLDocumentStore
from mini_server.dependencies import get_store
from mini_server.exceptions import StorageError
from mini_server.models.responses import HealthCheckResponse

router = APIRouter(prefix="", tags=["health"])


@router.get("/ping", response_model=HealthCheckResponse)
async def ping_health():
    """Simple health check endpoint that returns 200 OK."""
    return {"status": "ok", "message": "Server is running"}


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(store: SQLDocumentStore = Depends(get_store)):
    """Check that the document store answers a trivial query.

    Returns 503 with status ``unhealthy`` when the database is unreachable.
    """
    try:
        await store.ping()
    except StorageError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "message": f"Database connection failed: {e.message}"},
        )
    return {"status": "healthy", "message": "Database connection successful"}
