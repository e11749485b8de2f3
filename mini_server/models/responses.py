from typing import Dict, Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Envelope for a single resource"""

    data: T


class LinkedResponse(BaseModel, Generic[T]):
    """Envelope for a resource together with related URLs"""

    data: T
    links: Dict[str, str]


class PageMeta(BaseModel):
    count: int
    limit: int
    offset: int


class PageResponse(BaseModel, Generic[T]):
    """Envelope for one page of a listing; ``meta.count`` is the unpaginated total"""

    data: List[T]
    meta: PageMeta


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Body of every error answer"""

    error: str
    details: Dict = {}


class HealthCheckResponse(BaseModel):
    """Response for health check endpoint"""

    status: str
    message: str
